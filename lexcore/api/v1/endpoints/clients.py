"""
Client Lifecycle Endpoints
Client listing, cursors and the create/update/transfer/drop/delete mutators
"""

from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from lexcore.core.deps import (
    InFlightOperations,
    get_client_store,
    get_current_actor,
    get_in_flight_operations,
    get_store_registry,
    raise_for_outcome,
    require_access,
)
from lexcore.schemas.actor import Actor
from lexcore.schemas.client import (
    Client,
    ClientCreateRequest,
    ClientDropRequest,
    ClientStoreSnapshot,
    ClientTransferRequest,
    ClientUpdateRequest,
    MutationOutcome,
)
from lexcore.services.client_store import ClientStore, ClientStoreRegistry

logger = structlog.get_logger()
router = APIRouter()

can_view = require_access(capabilities=["view:clients"])
can_edit = require_access(capabilities=["edit:clients"])
can_transfer = require_access(capabilities=["transfer:clients"])
can_drop = require_access(capabilities=["drop:clients"])
can_delete = require_access(capabilities=["delete:clients"])


# ==================== Collection reads (before parameterized routes) ====================


@router.get("", response_model=List[Client])
@router.get("/", response_model=List[Client])
async def list_clients(
    include_dropped: bool = Query(False, description="Append dropped clients after active ones"),
    current_actor: Actor = Depends(can_view),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    """List active clients."""
    return store.list_clients(include_dropped=include_dropped)


@router.get("/dropped", response_model=List[Client])
async def list_dropped_clients(
    current_actor: Actor = Depends(can_view),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    return list(store.dropped)


@router.get("/search", response_model=List[Client])
async def search_clients(
    q: str = Query("", description="Matches name, email, phone, company or tag"),
    include_dropped: bool = Query(False),
    current_actor: Actor = Depends(can_view),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    return store.search(q, include_dropped=include_dropped)


@router.get("/state", response_model=ClientStoreSnapshot)
async def get_store_state(
    current_actor: Actor = Depends(can_view),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    """Current partitions, cursors and view of the caller's session."""
    return store.snapshot()


@router.delete("/state", status_code=status.HTTP_204_NO_CONTENT)
async def release_store(
    current_actor: Actor = Depends(get_current_actor),
    registry: ClientStoreRegistry = Depends(get_store_registry),
) -> None:
    """Drop the caller's session store, e.g. on sign-out."""
    registry.discard(current_actor.id)


@router.post("/refresh", response_model=ClientStoreSnapshot)
async def refresh_clients(
    current_actor: Actor = Depends(can_view),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    """Reload both partitions from the store of record."""
    raise_for_outcome(await store.refresh())
    return store.snapshot()


@router.delete("/edit", response_model=ClientStoreSnapshot)
async def clear_edit_cursor(
    current_actor: Actor = Depends(can_edit),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    store.clear_edit()
    return store.snapshot()


# ==================== Create ====================


@router.post("", response_model=MutationOutcome, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=MutationOutcome, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_in: ClientCreateRequest,
    current_actor: Actor = Depends(can_edit),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    """Create a client, with a linked login account when a password is given."""
    logger.info("Creating client", actor_id=current_actor.id, email=client_in.email)
    return raise_for_outcome(await store.create(client_in))


# ==================== Single client ====================


@router.get("/{client_id}", response_model=Client)
async def get_client(
    client_id: str,
    current_actor: Actor = Depends(can_view),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    client = store.get(client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.post("/{client_id}/view", response_model=ClientStoreSnapshot)
async def view_client(
    client_id: str,
    current_actor: Actor = Depends(can_view),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    """Select a client for the details view."""
    if not store.view(client_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return store.snapshot()


@router.post("/{client_id}/edit", response_model=ClientStoreSnapshot)
async def start_edit_client(
    client_id: str,
    current_actor: Actor = Depends(can_edit),
    store: ClientStore = Depends(get_client_store),
) -> Any:
    if not store.start_edit(client_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return store.snapshot()


@router.put("/{client_id}", response_model=MutationOutcome)
async def update_client(
    client_id: str,
    client_in: ClientUpdateRequest,
    current_actor: Actor = Depends(can_edit),
    store: ClientStore = Depends(get_client_store),
    operations: InFlightOperations = Depends(get_in_flight_operations),
) -> Any:
    async with operations.claim(client_id):
        outcome = await store.update(client_id, client_in)
    return raise_for_outcome(outcome)


@router.post("/{client_id}/transfer", response_model=MutationOutcome)
async def transfer_client(
    client_id: str,
    transfer_in: ClientTransferRequest,
    current_actor: Actor = Depends(can_transfer),
    store: ClientStore = Depends(get_client_store),
    operations: InFlightOperations = Depends(get_in_flight_operations),
) -> Any:
    """Reassign a client to another attorney."""
    async with operations.claim(client_id):
        outcome = await store.transfer(client_id, transfer_in.attorney_id)
    return raise_for_outcome(outcome)


@router.post("/{client_id}/drop", response_model=MutationOutcome)
async def drop_client(
    client_id: str,
    drop_in: ClientDropRequest,
    current_actor: Actor = Depends(can_drop),
    store: ClientStore = Depends(get_client_store),
    operations: InFlightOperations = Depends(get_in_flight_operations),
) -> Any:
    """Move an active client to the dropped list."""
    async with operations.claim(client_id):
        outcome = await store.drop(client_id, drop_in.reason)
    return raise_for_outcome(outcome)


@router.delete("/{client_id}", response_model=MutationOutcome)
async def delete_client(
    client_id: str,
    current_actor: Actor = Depends(can_delete),
    store: ClientStore = Depends(get_client_store),
    operations: InFlightOperations = Depends(get_in_flight_operations),
) -> Any:
    """Permanently delete a client and its linked login account."""
    async with operations.claim(client_id):
        outcome = await store.delete(client_id)
    return raise_for_outcome(outcome)
