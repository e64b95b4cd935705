"""
Tests for the Client Entity Store
Cursor operations, refresh and the five lifecycle mutators
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from conftest import FakePersistence, make_client
from lexcore.schemas.actor import Actor
from lexcore.schemas.client import ClientDraft, ClientPatch, ClientView, FailureKind
from lexcore.services.client_store import ClientStore, ClientStoreRegistry
from lexcore.services.providers import AccountProviderError, ProviderError


# ==================== Fixtures ====================

@pytest.fixture
def store(persistence, accounts):
    return ClientStore(persistence, accounts, owner_id="u-admin")


@pytest_asyncio.fixture
async def loaded_store(store):
    outcome = await store.refresh()
    assert outcome.ok
    return store


def ids(clients):
    return [c.id for c in clients]


def assert_partitioned(store, persistence):
    active, dropped = set(ids(store.active)), set(ids(store.dropped))
    assert active.isdisjoint(dropped)
    assert active | dropped == set(persistence.records)


# ==================== Refresh ====================


class TestRefresh:
    @pytest.mark.asyncio
    async def test_partitions_by_drop_flag(self, store, persistence):
        outcome = await store.refresh()

        assert outcome.ok
        assert ids(store.active) == ["c-1", "c-2"]
        assert ids(store.dropped) == ["c-3"]
        assert store.loading is False
        assert_partitioned(store, persistence)

    @pytest.mark.asyncio
    async def test_failure_leaves_state_unchanged(self, loaded_store, persistence):
        before = loaded_store.snapshot()
        persistence.list = AsyncMock(side_effect=ProviderError("db down"))

        outcome = await loaded_store.refresh()

        assert not outcome.ok
        assert outcome.failure == FailureKind.PERSISTENCE
        assert loaded_store.snapshot() == before

    @pytest.mark.asyncio
    async def test_clears_cursors_for_vanished_clients(self, loaded_store, persistence):
        loaded_store.view("c-1")
        del persistence.records["c-1"]

        await loaded_store.refresh()

        assert loaded_store.selected is None
        assert loaded_store.get("c-1") is None

    @pytest.mark.asyncio
    async def test_notifies_subscribers_once_with_full_snapshot(self, store):
        listener = MagicMock()
        store.subscribe(listener)

        await store.refresh()

        listener.assert_called_once()
        snapshot = listener.call_args.args[0]
        assert ids(snapshot.active) == ["c-1", "c-2"]
        assert ids(snapshot.dropped) == ["c-3"]


# ==================== Cursors ====================


class TestCursors:
    @pytest.mark.asyncio
    async def test_view_selects_and_clears_editing(self, loaded_store):
        loaded_store.start_edit("c-2")

        assert loaded_store.view("c-1") is True

        assert loaded_store.selected.id == "c-1"
        assert loaded_store.editing is None
        assert loaded_store.active_view == ClientView.DETAILS

    @pytest.mark.asyncio
    async def test_start_and_clear_edit(self, loaded_store):
        assert loaded_store.start_edit(loaded_store.get("c-2")) is True
        assert loaded_store.editing.id == "c-2"
        assert loaded_store.active_view == ClientView.FORM

        loaded_store.clear_edit()
        assert loaded_store.editing is None

    @pytest.mark.asyncio
    async def test_unknown_client_leaves_state_unchanged(self, loaded_store):
        before = loaded_store.snapshot()

        assert loaded_store.view("missing") is False
        assert loaded_store.start_edit("missing") is False
        assert loaded_store.snapshot() == before

    @pytest.mark.asyncio
    async def test_dropped_clients_can_be_viewed(self, loaded_store):
        assert loaded_store.view("c-3") is True
        assert loaded_store.selected.is_dropped


# ==================== Reads ====================


class TestReads:
    @pytest.mark.asyncio
    async def test_list_clients(self, loaded_store):
        assert ids(loaded_store.list_clients()) == ["c-1", "c-2"]
        assert ids(loaded_store.list_clients(include_dropped=True)) == ["c-1", "c-2", "c-3"]

    @pytest.mark.asyncio
    async def test_search(self, loaded_store):
        assert ids(loaded_store.search("GRACE")) == ["c-2"]
        assert ids(loaded_store.search("vip")) == ["c-1"]
        assert ids(loaded_store.search("turing")) == []
        assert ids(loaded_store.search("turing", include_dropped=True)) == ["c-3"]
        assert ids(loaded_store.search("  ")) == ["c-1", "c-2"]

    @pytest.mark.asyncio
    async def test_state_slices_are_read_only(self, loaded_store):
        assert isinstance(loaded_store.active, tuple)
        with pytest.raises(AttributeError):
            loaded_store.active = ()


# ==================== Create ====================


class TestCreate:
    @pytest.mark.asyncio
    async def test_prepends_confirmed_client(self, loaded_store, persistence):
        outcome = await loaded_store.create(ClientDraft(full_name="Edsger Dijkstra", email="ed@example.com"))

        assert outcome.ok
        assert not outcome.has_warnings
        assert loaded_store.active[0].id == outcome.client.id
        assert outcome.client.account_number == f"A{outcome.client.id[:3]}"
        assert outcome.client.case_status == "Initial Consultation"
        assert_partitioned(loaded_store, persistence)

    @pytest.mark.asyncio
    async def test_provisions_account_when_password_given(self, loaded_store, persistence, accounts):
        outcome = await loaded_store.create(
            ClientDraft(full_name="Barbara Liskov", email="bl@example.com", password="secret123")
        )

        assert outcome.ok
        assert outcome.client.account_id == "acct-new"
        accounts.provision_account.assert_awaited_once_with(
            email="bl@example.com", password="secret123", full_name="Barbara Liskov"
        )
        inserted = persistence.calls[-1][1]
        assert "password" not in inserted

    @pytest.mark.asyncio
    async def test_provisioning_failure_is_a_warning(self, loaded_store, accounts):
        accounts.provision_account.side_effect = AccountProviderError("account service down")

        outcome = await loaded_store.create(ClientDraft(full_name="A", email="a@x.com", password="secret123"))

        assert outcome.ok
        assert outcome.has_warnings
        assert outcome.client.account_id is None
        assert outcome.client.has_linked_account is False
        assert loaded_store.active[0].id == outcome.client.id

    @pytest.mark.asyncio
    async def test_without_account_provider_warns(self, persistence):
        store = ClientStore(persistence, accounts=None)

        outcome = await store.create(ClientDraft(full_name="A", email="a@x.com", password="secret123"))

        assert outcome.ok
        assert outcome.has_warnings
        assert outcome.client.account_id is None

    @pytest.mark.asyncio
    async def test_insert_failure_leaves_state_unchanged(self, loaded_store, persistence, accounts):
        before = loaded_store.snapshot()
        persistence.insert = AsyncMock(side_effect=ProviderError("constraint violated"))

        outcome = await loaded_store.create(ClientDraft(full_name="A", email="a@x.com", password="secret123"))

        assert not outcome.ok
        assert outcome.failure == FailureKind.PERSISTENCE
        assert loaded_store.snapshot() == before
        # The just-provisioned account is not left orphaned.
        accounts.delete_account.assert_awaited_once_with("acct-new")


# ==================== Update ====================


class TestUpdate:
    @pytest.mark.asyncio
    async def test_replaces_in_place_and_syncs_selected(self, loaded_store):
        loaded_store.view("c-2")

        outcome = await loaded_store.update("c-2", ClientPatch(phone="555-0199"))

        assert outcome.ok
        assert ids(loaded_store.active) == ["c-1", "c-2"]
        assert loaded_store.get("c-2").phone == "555-0199"
        assert loaded_store.selected.phone == "555-0199"
        assert loaded_store.active_view == ClientView.DETAILS

    @pytest.mark.asyncio
    async def test_updates_dropped_client_in_dropped_partition(self, loaded_store):
        outcome = await loaded_store.update("c-3", ClientPatch(notes="Closed file"))

        assert outcome.ok
        assert ids(loaded_store.dropped) == ["c-3"]
        assert loaded_store.get("c-3").notes == "Closed file"
        assert "c-3" not in ids(loaded_store.active)

    @pytest.mark.asyncio
    async def test_clears_edit_cursor(self, loaded_store):
        loaded_store.start_edit("c-1")

        await loaded_store.update("c-1", ClientPatch(full_name="Augusta Ada King"))

        assert loaded_store.editing is None
        assert loaded_store.active_view == ClientView.LIST

    @pytest.mark.asyncio
    async def test_password_updates_linked_account_first(self, loaded_store, accounts):
        outcome = await loaded_store.update("c-2", ClientPatch(password="new-secret-1"))

        assert outcome.ok
        assert not outcome.has_warnings
        accounts.update_account_password.assert_awaited_once_with("acct-2", "new-secret-1")

    @pytest.mark.asyncio
    async def test_account_failure_does_not_block_record_update(self, loaded_store, accounts, persistence):
        accounts.update_account_password.side_effect = AccountProviderError("rejected")

        outcome = await loaded_store.update("c-2", ClientPatch(password="new-secret-1", notes="Called"))

        assert outcome.ok
        assert outcome.has_warnings
        assert persistence.records["c-2"].notes == "Called"

    @pytest.mark.asyncio
    async def test_password_without_linked_account_warns(self, loaded_store, accounts):
        outcome = await loaded_store.update("c-1", ClientPatch(password="new-secret-1"))

        assert outcome.ok
        assert outcome.has_warnings
        accounts.update_account_password.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_client_is_not_found(self, loaded_store, persistence):
        outcome = await loaded_store.update("missing", ClientPatch(notes="x"))

        assert not outcome.ok
        assert outcome.failure == FailureKind.NOT_FOUND
        assert not [call for call in persistence.calls if call[0] == "update"]

    @pytest.mark.asyncio
    async def test_persistence_failure_leaves_state_unchanged(self, loaded_store, persistence):
        loaded_store.view("c-1")
        before = loaded_store.snapshot()
        persistence.update = AsyncMock(side_effect=ProviderError("timeout"))

        outcome = await loaded_store.update("c-1", ClientPatch(notes="x"))

        assert outcome.failure == FailureKind.PERSISTENCE
        assert loaded_store.snapshot() == before


# ==================== Transfer ====================


class TestTransfer:
    @pytest.mark.asyncio
    async def test_last_write_wins(self, loaded_store):
        await loaded_store.transfer("c-1", "att-A")
        outcome = await loaded_store.transfer("c-1", "att-B")

        assert outcome.ok
        assert loaded_store.get("c-1").assigned_attorney_id == "att-B"

    @pytest.mark.asyncio
    async def test_syncs_selected(self, loaded_store):
        loaded_store.view("c-1")

        await loaded_store.transfer("c-1", "att-9")

        assert loaded_store.selected.assigned_attorney_id == "att-9"
        assert ids(loaded_store.active) == ["c-1", "c-2"]

    @pytest.mark.asyncio
    async def test_record_gone_from_store_of_record(self, loaded_store, persistence):
        del persistence.records["c-1"]

        outcome = await loaded_store.transfer("c-1", "att-9")

        assert outcome.failure == FailureKind.NOT_FOUND
        assert loaded_store.get("c-1").assigned_attorney_id == "att-1"


# ==================== Drop ====================


class TestDrop:
    @pytest.mark.asyncio
    async def test_moves_exactly_one_client(self, loaded_store, persistence):
        outcome = await loaded_store.drop("c-1", "Conflict of interest")

        assert outcome.ok
        assert ids(loaded_store.active) == ["c-2"]
        assert ids(loaded_store.dropped) == ["c-3", "c-1"]
        dropped = loaded_store.get("c-1")
        assert dropped.is_dropped is True
        assert dropped.dropped_date is not None
        assert dropped.dropped_reason == "Conflict of interest"
        assert_partitioned(loaded_store, persistence)

    @pytest.mark.asyncio
    async def test_refresh_after_drop_yields_same_partitioning(self, loaded_store):
        await loaded_store.drop("c-1", "Conflict of interest")
        active, dropped = ids(loaded_store.active), set(ids(loaded_store.dropped))

        await loaded_store.refresh()

        assert ids(loaded_store.active) == active
        assert set(ids(loaded_store.dropped)) == dropped

    @pytest.mark.asyncio
    async def test_clears_selected_and_resets_view(self, loaded_store):
        loaded_store.view("c-1")

        outcome = await loaded_store.drop("c-1", "No longer represented")

        assert outcome.reset_view is True
        assert outcome.redirect_to == "/clients"
        assert loaded_store.selected is None
        assert loaded_store.active_view == ClientView.LIST

    @pytest.mark.asyncio
    async def test_dropping_client_in_edit_form_leaves_the_form(self, loaded_store):
        loaded_store.start_edit("c-1")
        assert loaded_store.active_view == ClientView.FORM

        outcome = await loaded_store.drop("c-1", "No longer represented")

        assert outcome.reset_view is True
        assert loaded_store.editing is None
        assert loaded_store.active_view == ClientView.LIST

    @pytest.mark.asyncio
    async def test_other_selection_is_kept(self, loaded_store):
        loaded_store.view("c-2")

        outcome = await loaded_store.drop("c-1", "No longer represented")

        assert outcome.reset_view is False
        assert outcome.redirect_to is None
        assert loaded_store.selected.id == "c-2"
        assert loaded_store.active_view == ClientView.DETAILS

    @pytest.mark.asyncio
    async def test_store_of_record_error_keeps_selection(self, loaded_store, persistence):
        loaded_store.view("c-1")
        before = loaded_store.snapshot()
        persistence.update = AsyncMock(side_effect=ProviderError("connection reset"))

        outcome = await loaded_store.drop("c-1", "Conflict")

        assert outcome.failure == FailureKind.PERSISTENCE
        assert loaded_store.selected.id == "c-1"
        assert loaded_store.snapshot() == before

    @pytest.mark.asyncio
    async def test_drop_of_dropped_client_is_not_found(self, loaded_store, persistence):
        outcome = await loaded_store.drop("c-3", "again")

        assert outcome.failure == FailureKind.NOT_FOUND
        assert not [call for call in persistence.calls if call[0] == "update"]

    @pytest.mark.asyncio
    async def test_unconfirmed_drop_is_a_failure(self, loaded_store, persistence):
        before = loaded_store.snapshot()
        persistence.update = AsyncMock(return_value=make_client("c-1"))

        outcome = await loaded_store.drop("c-1", "Conflict")

        assert outcome.failure == FailureKind.PERSISTENCE
        assert loaded_store.snapshot() == before


# ==================== Delete ====================


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_dropped_client_leaves_active_untouched(self, loaded_store, persistence):
        active_before = loaded_store.active

        outcome = await loaded_store.delete("c-3")

        assert outcome.ok
        assert loaded_store.dropped == ()
        assert loaded_store.active == active_before
        assert "c-3" not in persistence.records

    @pytest.mark.asyncio
    async def test_removes_linked_account_first(self, loaded_store, accounts):
        outcome = await loaded_store.delete("c-2")

        assert outcome.ok
        accounts.delete_account.assert_awaited_once_with("acct-2")
        assert loaded_store.get("c-2") is None

    @pytest.mark.asyncio
    async def test_account_failure_is_not_fatal(self, loaded_store, accounts, persistence):
        accounts.delete_account.side_effect = AccountProviderError("gone")

        outcome = await loaded_store.delete("c-2")

        assert outcome.ok
        assert outcome.has_warnings
        assert "c-2" not in persistence.records

    @pytest.mark.asyncio
    async def test_clears_both_cursors(self, loaded_store):
        loaded_store.view("c-1")
        loaded_store.start_edit("c-1")

        outcome = await loaded_store.delete("c-1")

        assert outcome.reset_view is True
        assert loaded_store.selected is None
        assert loaded_store.editing is None

    @pytest.mark.asyncio
    async def test_unknown_client_is_not_found(self, loaded_store, accounts):
        outcome = await loaded_store.delete("missing")

        assert outcome.failure == FailureKind.NOT_FOUND
        accounts.delete_account.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_record_failure_leaves_state_unchanged(self, loaded_store, persistence):
        before = loaded_store.snapshot()
        persistence.delete = AsyncMock(side_effect=ProviderError("locked"))

        outcome = await loaded_store.delete("c-1")

        assert outcome.failure == FailureKind.PERSISTENCE
        assert loaded_store.snapshot() == before


# ==================== Subscribers & registry ====================


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_the_store(loaded_store):
    loaded_store.subscribe(MagicMock(side_effect=RuntimeError("render crashed")))

    outcome = await loaded_store.drop("c-1", "Moved firms")

    assert outcome.ok
    assert "c-1" in ids(loaded_store.dropped)


@pytest.mark.asyncio
async def test_unsubscribe(loaded_store):
    listener = MagicMock()
    unsubscribe = loaded_store.subscribe(listener)
    unsubscribe()

    loaded_store.view("c-1")

    listener.assert_not_called()


def test_registry_hands_out_one_store_per_actor():
    registry = ClientStoreRegistry(FakePersistence())
    ada = Actor(id="u-1", role="attorney")

    first = registry.for_actor(ada)
    assert registry.for_actor(ada) is first
    assert registry.for_actor(Actor(id="u-2", role="attorney")) is not first
    assert len(registry) == 2

    registry.discard("u-1")
    assert registry.for_actor(ada) is not first


def test_registry_evicts_least_recently_used_store():
    registry = ClientStoreRegistry(FakePersistence(), capacity=2)
    first = registry.for_actor(Actor(id="u-1", role="attorney"))
    registry.for_actor(Actor(id="u-2", role="attorney"))

    assert registry.for_actor(Actor(id="u-1", role="attorney")) is first
    registry.for_actor(Actor(id="u-3", role="attorney"))

    assert len(registry) == 2
    assert "u-2" not in registry
    assert "u-1" in registry
