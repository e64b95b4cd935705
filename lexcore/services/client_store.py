"""
Client Entity Store
Owns the in-memory client state of one actor session and the lifecycle
mutators that change persisted and in-memory state together.

State slices: ``active`` and ``dropped`` partitions, the ``selected`` and
``editing`` cursors, plus the presentational ``active_view``. Nothing
outside this class writes them. Every mutator awaits the store of record
first and only then commits the in-memory change in a single synchronous
step, so a reader never observes one without the other. Failed calls
leave the state exactly as it was.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Optional, Union

import structlog

from lexcore.core.simple_config import settings
from lexcore.schemas.actor import Actor
from lexcore.schemas.client import (
    Client,
    ClientDraft,
    ClientPatch,
    ClientStoreSnapshot,
    ClientView,
    FailureKind,
    MutationOutcome,
)
from lexcore.services.providers import AccountProvider, ClientPersistenceProvider, RecordNotFoundError

logger = structlog.get_logger()

StoreListener = Callable[[ClientStoreSnapshot], None]
ClientRef = Union[Client, str]

ACTIVE = "active"
DROPPED = "dropped"

_UNCHANGED: Any = object()

NOT_FOUND_MESSAGE = "Client not found. It may have been removed; refresh the list."


def _client_id(ref: ClientRef) -> str:
    return ref.id if isinstance(ref, Client) else str(ref)


def _without(clients: tuple[Client, ...], client_id: str) -> tuple[Client, ...]:
    return tuple(c for c in clients if c.id != client_id)


def _replace(clients: tuple[Client, ...], client: Client) -> tuple[Client, ...]:
    return tuple(client if c.id == client.id else c for c in clients)


class ClientStore:
    def __init__(
        self,
        persistence: ClientPersistenceProvider,
        accounts: Optional[AccountProvider] = None,
        *,
        owner_id: Optional[str] = None,
        list_path: Optional[str] = None,
    ) -> None:
        self._persistence = persistence
        self._accounts = accounts
        self._owner_id = owner_id
        self._list_path = list_path or settings.CLIENT_LIST_PATH
        self._active: tuple[Client, ...] = ()
        self._dropped: tuple[Client, ...] = ()
        self._selected_id: Optional[str] = None
        self._editing_id: Optional[str] = None
        self._active_view = ClientView.LIST
        self._loading = False
        self._listeners: list[StoreListener] = []
        self._log = logger.bind(store_owner=owner_id)

    # ------------------------------------------------------------------ reads

    @property
    def active(self) -> tuple[Client, ...]:
        return self._active

    @property
    def dropped(self) -> tuple[Client, ...]:
        return self._dropped

    @property
    def selected(self) -> Optional[Client]:
        return self._lookup(self._selected_id)[1]

    @property
    def editing(self) -> Optional[Client]:
        return self._lookup(self._editing_id)[1]

    @property
    def active_view(self) -> ClientView:
        return self._active_view

    @property
    def loading(self) -> bool:
        return self._loading

    def get(self, client_id: str) -> Optional[Client]:
        return self._lookup(client_id)[1]

    def partition_of(self, client_id: str) -> Optional[str]:
        return self._lookup(client_id)[0]

    def list_clients(self, include_dropped: bool = False) -> list[Client]:
        if include_dropped:
            return list(self._active) + list(self._dropped)
        return list(self._active)

    def search(self, term: str, include_dropped: bool = False) -> list[Client]:
        needle = (term or "").strip().lower()
        clients = self.list_clients(include_dropped=include_dropped)
        if not needle:
            return clients

        def matches(client: Client) -> bool:
            haystack = [client.full_name, client.email, client.phone, client.company_name or "", *client.tags]
            return any(needle in value.lower() for value in haystack if value)

        return [c for c in clients if matches(c)]

    def snapshot(self) -> ClientStoreSnapshot:
        return ClientStoreSnapshot(
            active=list(self._active),
            dropped=list(self._dropped),
            selected=self.selected,
            editing=self.editing,
            active_view=self._active_view,
            loading=self._loading,
        )

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a dependent view; it is called after every committed change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---------------------------------------------------------------- cursors

    def view(self, client: ClientRef) -> bool:
        client_id = _client_id(client)
        if self._lookup(client_id)[1] is None:
            self._log.warning("Cannot view unknown client", client_id=client_id)
            return False
        self._commit(selected_id=client_id, editing_id=None, view=ClientView.DETAILS)
        return True

    def start_edit(self, client: ClientRef) -> bool:
        client_id = _client_id(client)
        if self._lookup(client_id)[1] is None:
            self._log.warning("Cannot edit unknown client", client_id=client_id)
            return False
        self._commit(editing_id=client_id, view=ClientView.FORM)
        return True

    def clear_edit(self) -> None:
        self._commit(editing_id=None)

    # --------------------------------------------------------------- refresh

    async def refresh(self) -> MutationOutcome:
        """Reload both partitions from the store of record in one step."""
        self._loading = True
        try:
            clients = await self._persistence.list()
        except Exception as exc:  # noqa: BLE001
            self._loading = False
            self._log.error("Failed to fetch clients", error=str(exc))
            return MutationOutcome.failed(
                FailureKind.PERSISTENCE, "Failed to load client data. Please try again later."
            )

        active = tuple(c for c in clients if not c.is_dropped)
        dropped = tuple(c for c in clients if c.is_dropped)
        known = {c.id for c in clients}

        self._loading = False
        self._commit(
            active=active,
            dropped=dropped,
            selected_id=self._selected_id if self._selected_id in known else None,
            editing_id=self._editing_id if self._editing_id in known else None,
        )
        self._log.info("Clients refreshed", active=len(active), dropped=len(dropped))
        return MutationOutcome.success(message=f"Loaded {len(clients)} clients")

    # -------------------------------------------------------------- mutators

    async def create(self, draft: ClientDraft) -> MutationOutcome:
        """
        Create a client record, provisioning a login account first when a
        password is supplied. Provisioning failure only downgrades the
        result to a warning; record creation failure fails the call.
        """
        warnings: list[str] = []
        account_id: Optional[str] = None

        if draft.password:
            if self._accounts is None:
                warnings.append("Login accounts are not available; the client was created without one.")
                self._log.warning("Account provisioning unavailable", email=draft.email)
            else:
                try:
                    account_id = await self._accounts.provision_account(
                        email=draft.email, password=draft.password, full_name=draft.full_name
                    )
                except Exception as exc:  # noqa: BLE001
                    warnings.append("The login account could not be created; the client was saved without one.")
                    self._log.warning("Account provisioning failed", email=draft.email, error=str(exc))

        data = draft.record_data()
        data["account_id"] = account_id

        try:
            client = await self._persistence.insert(data)
        except Exception as exc:  # noqa: BLE001
            self._log.error("Failed to create client", email=draft.email, error=str(exc))
            if account_id:
                await self._discard_account(account_id, reason="client record was not created")
            return MutationOutcome.failed(FailureKind.PERSISTENCE, "Failed to add client. Please try again.")

        self._commit(active=(client,) + _without(self._active, client.id), view=ClientView.LIST)
        self._log.info("Client created", client_id=client.id, account_linked=client.has_linked_account)
        return MutationOutcome.success(
            client,
            message=f"{client.full_name} has been added to your clients.",
            warnings=warnings,
        )

    async def update(self, client_id: str, changes: ClientPatch) -> MutationOutcome:
        """
        Update a client in whichever partition holds it. A new password is
        pushed to the linked account first; failure there is a warning.
        """
        current = self.get(client_id)
        if current is None:
            return MutationOutcome.failed(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE)

        warnings: list[str] = []
        if changes.password:
            if current.account_id and self._accounts is not None:
                try:
                    await self._accounts.update_account_password(current.account_id, changes.password)
                except Exception as exc:  # noqa: BLE001
                    warnings.append("The login password could not be updated.")
                    self._log.warning(
                        "Account password update failed",
                        client_id=client_id,
                        account_id=current.account_id,
                        error=str(exc),
                    )
            else:
                warnings.append("This client has no linked login account; the password was not changed.")
                self._log.warning("Password supplied for client without linked account", client_id=client_id)

        patch = changes.record_patch()
        if patch:
            outcome = await self._persist_update(client_id, patch, action="update")
            if not outcome.ok:
                return outcome
            updated = outcome.client
        else:
            updated = current

        next_view = ClientView.DETAILS if self._selected_id == client_id else ClientView.LIST
        self._commit(editing_id=None, view=next_view, place=updated)
        self._log.info("Client updated", client_id=client_id, fields=sorted(patch))
        return MutationOutcome.success(
            updated,
            message=f"{updated.full_name}'s information has been updated.",
            warnings=warnings,
        )

    async def transfer(self, client_id: str, attorney_id: str) -> MutationOutcome:
        """Reassign the client to a single new attorney."""
        current = self.get(client_id)
        if current is None:
            return MutationOutcome.failed(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE)

        outcome = await self._persist_update(client_id, {"assigned_attorney_id": attorney_id}, action="transfer")
        if not outcome.ok:
            return outcome

        updated = outcome.client
        self._commit(place=updated)
        self._log.info(
            "Client transferred",
            client_id=client_id,
            from_attorney=current.assigned_attorney_id,
            to_attorney=updated.assigned_attorney_id,
        )
        return MutationOutcome.success(updated, message="Client has been transferred to the new attorney.")

    async def drop(self, client_id: str, reason: str) -> MutationOutcome:
        """
        Move an active client to the dropped partition. ``reason`` is
        validated by the caller; the drop date comes from the store of record.
        """
        partition, current = self._lookup(client_id)
        if partition != ACTIVE:
            return MutationOutcome.failed(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE)

        outcome = await self._persist_update(
            client_id, {"is_dropped": True, "dropped_reason": reason}, action="drop"
        )
        if not outcome.ok:
            return outcome

        updated = outcome.client
        if not updated.is_dropped:
            self._log.error("Store of record did not confirm drop", client_id=client_id)
            return MutationOutcome.failed(FailureKind.PERSISTENCE, "Failed to drop client. Please try again.")

        cursors, reset = self._release_cursors(client_id)
        self._commit(
            active=_without(self._active, client_id),
            dropped=_without(self._dropped, client_id) + (updated,),
            **cursors,
        )
        self._log.info("Client dropped", client_id=client_id, dropped_date=str(updated.dropped_date))
        return MutationOutcome.success(
            updated,
            message=f"{updated.full_name} has been marked as dropped.",
            reset_view=reset,
            redirect_to=self._list_path if reset else None,
        )

    async def delete(self, client_id: str) -> MutationOutcome:
        """
        Permanently delete a client from either partition. The linked login
        account is removed first on a best-effort basis.
        """
        current = self.get(client_id)
        if current is None:
            return MutationOutcome.failed(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE)

        warnings: list[str] = []
        if current.account_id:
            if not await self._discard_account(current.account_id, reason="client deleted"):
                warnings.append("The linked login account could not be removed.")

        try:
            await self._persistence.delete(client_id)
        except RecordNotFoundError:
            self._log.warning("Client missing from store of record", client_id=client_id, action="delete")
            return MutationOutcome.failed(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE)
        except Exception as exc:  # noqa: BLE001
            self._log.error("Failed to delete client", client_id=client_id, error=str(exc))
            return MutationOutcome.failed(FailureKind.PERSISTENCE, "Failed to delete client. Please try again.")

        cursors, reset = self._release_cursors(client_id)
        self._commit(
            active=_without(self._active, client_id),
            dropped=_without(self._dropped, client_id),
            **cursors,
        )
        self._log.info("Client deleted", client_id=client_id)
        return MutationOutcome.success(
            current,
            message=f"{current.full_name} has been permanently removed.",
            warnings=warnings,
            reset_view=reset,
            redirect_to=self._list_path if reset else None,
        )

    # -------------------------------------------------------------- internals

    def _release_cursors(self, client_id: str) -> tuple[dict[str, Any], bool]:
        """Cursor changes for a client leaving the store, and whether the view falls back to the list."""
        cursors: dict[str, Any] = {}
        if self._selected_id == client_id:
            cursors["selected_id"] = None
        if self._editing_id == client_id:
            cursors["editing_id"] = None
        # Neither the details view nor the form may outlive its cursor
        reset = bool(cursors)
        if reset:
            cursors["view"] = ClientView.LIST
        return cursors, reset

    def _lookup(self, client_id: Optional[str]) -> tuple[Optional[str], Optional[Client]]:
        if client_id is None:
            return None, None
        for client in self._active:
            if client.id == client_id:
                return ACTIVE, client
        for client in self._dropped:
            if client.id == client_id:
                return DROPPED, client
        return None, None

    async def _persist_update(self, client_id: str, patch: dict[str, Any], *, action: str) -> MutationOutcome:
        try:
            updated = await self._persistence.update(client_id, patch)
        except RecordNotFoundError:
            self._log.warning("Client missing from store of record", client_id=client_id, action=action)
            return MutationOutcome.failed(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE)
        except Exception as exc:  # noqa: BLE001
            self._log.error("Failed to persist client change", client_id=client_id, action=action, error=str(exc))
            return MutationOutcome.failed(FailureKind.PERSISTENCE, f"Failed to {action} client. Please try again.")
        return MutationOutcome.success(updated)

    async def _discard_account(self, account_id: str, *, reason: str) -> bool:
        if self._accounts is None:
            self._log.warning("Linked account left in place; no account provider", account_id=account_id, reason=reason)
            return False
        try:
            await self._accounts.delete_account(account_id)
            return True
        except Exception as exc:  # noqa: BLE001
            self._log.warning("Linked account deletion failed", account_id=account_id, reason=reason, error=str(exc))
            return False

    def _placed(self, client: Client) -> tuple[tuple[Client, ...], tuple[Client, ...]]:
        """Partitions with ``client`` replaced in place, or moved if its drop flag changed."""
        partition = self._lookup(client.id)[0]
        target = DROPPED if client.is_dropped else ACTIVE
        if partition == target:
            if target == ACTIVE:
                return _replace(self._active, client), self._dropped
            return self._active, _replace(self._dropped, client)
        active = _without(self._active, client.id)
        dropped = _without(self._dropped, client.id)
        if target == ACTIVE:
            return (client,) + active, dropped
        return active, dropped + (client,)

    def _commit(
        self,
        *,
        active: Any = _UNCHANGED,
        dropped: Any = _UNCHANGED,
        selected_id: Any = _UNCHANGED,
        editing_id: Any = _UNCHANGED,
        view: Any = _UNCHANGED,
        place: Optional[Client] = None,
    ) -> None:
        if place is not None:
            active, dropped = self._placed(place)
        if active is not _UNCHANGED:
            self._active = tuple(active)
        if dropped is not _UNCHANGED:
            self._dropped = tuple(dropped)
        if selected_id is not _UNCHANGED:
            self._selected_id = selected_id
        if editing_id is not _UNCHANGED:
            self._editing_id = editing_id
        if view is not _UNCHANGED:
            self._active_view = ClientView(view)
        self._publish()

    def _publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:  # noqa: BLE001
                self._log.error("Client store listener failed", error=str(exc))


class ClientStoreRegistry:
    """
    One client store per actor session.

    Stores are kept in least-recently-used order and the oldest is evicted
    past ``capacity``; an evicted actor gets a fresh, empty store on the
    next request and must refresh it.
    """

    def __init__(
        self,
        persistence: ClientPersistenceProvider,
        accounts: Optional[AccountProvider] = None,
        *,
        capacity: Optional[int] = None,
    ) -> None:
        self._persistence = persistence
        self._accounts = accounts
        self._capacity = max(1, capacity or settings.CLIENT_STORE_LIMIT)
        self._stores: OrderedDict[str, ClientStore] = OrderedDict()

    def for_actor(self, actor: Actor) -> ClientStore:
        store = self._stores.get(actor.id)
        if store is not None:
            self._stores.move_to_end(actor.id)
            return store

        store = ClientStore(self._persistence, self._accounts, owner_id=actor.id)
        self._stores[actor.id] = store
        logger.debug("Client store created", actor_id=actor.id)
        if len(self._stores) > self._capacity:
            evicted_id, _ = self._stores.popitem(last=False)
            logger.info("Client store evicted", actor_id=evicted_id, capacity=self._capacity)
        return store

    def discard(self, actor_id: str) -> None:
        if self._stores.pop(actor_id, None) is not None:
            logger.debug("Client store discarded", actor_id=actor_id)

    def __contains__(self, actor_id: object) -> bool:
        return actor_id in self._stores

    def __len__(self) -> int:
        return len(self._stores)
