"""
FastAPI Dependencies
Actor resolution, route guards, client store access and outcome mapping
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from lexcore.core.database import AsyncSessionLocal
from lexcore.core.guards import resolve_route_access
from lexcore.core.identity import BearerTokenIdentity, SessionStatus, build_bearer_identity
from lexcore.schemas.access import DenialReason, GuardState
from lexcore.schemas.actor import Actor
from lexcore.schemas.client import FailureKind, MutationOutcome
from lexcore.services.account_service import build_account_provider
from lexcore.services.client_store import ClientStore, ClientStoreRegistry
from lexcore.services.persistence import SqlClientPersistence

logger = structlog.get_logger()

# Security scheme
security = HTTPBearer(auto_error=False)

_bearer_identity: Optional[BearerTokenIdentity] = None
_store_registry: Optional[ClientStoreRegistry] = None


def get_bearer_identity() -> BearerTokenIdentity:
    global _bearer_identity
    if _bearer_identity is None:
        _bearer_identity = build_bearer_identity()
    return _bearer_identity


def get_store_registry() -> ClientStoreRegistry:
    global _store_registry
    if _store_registry is None:
        _store_registry = ClientStoreRegistry(
            SqlClientPersistence(AsyncSessionLocal),
            build_account_provider(),
        )
    return _store_registry


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    identity: BearerTokenIdentity = Depends(get_bearer_identity),
) -> Optional[Actor]:
    """
    Actor of the current request, or None without a bearer token.

    A token that fails verification raises 401.
    """
    if not credentials:
        return None
    return identity.resolve(credentials.credentials)


def require_access(
    capabilities: Optional[Iterable[str]] = None,
    roles: Optional[Iterable[Any]] = None,
):
    """
    Dependency factory for guarding an endpoint

    Args:
        capabilities: Capabilities of which the actor must hold at least one
        roles: Roles of which the actor must hold one

    Returns:
        Dependency function resolving to the granted actor
    """
    required_capabilities = list(capabilities or [])
    required_roles = list(roles or [])

    async def access_checker(
        request: Request,
        actor: Optional[Actor] = Depends(get_optional_actor),
    ) -> Actor:
        session = SessionStatus.ESTABLISHED if actor else SessionStatus.NONE
        decision = resolve_route_access(
            session,
            actor,
            capabilities=required_capabilities,
            roles=required_roles,
            location=request.url.path,
        )
        if decision.state == GuardState.GRANTED:
            logger.debug("Access granted", actor_id=actor.id, path=request.url.path)
            return actor

        detail = {"notice": decision.notice, "redirect_to": decision.redirect_to}
        if decision.reason == DenialReason.NO_SESSION:
            logger.warning("Missing authentication credentials", path=request.url.path)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=detail,
                headers={"WWW-Authenticate": "Bearer"},
            )

        logger.warning(
            "Actor lacks required access",
            actor_id=actor.id,
            role=actor.role,
            required_capabilities=required_capabilities,
            required_roles=required_roles,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

    return access_checker


get_current_actor = require_access()


async def get_client_store(
    actor: Actor = Depends(get_current_actor),
    registry: ClientStoreRegistry = Depends(get_store_registry),
) -> ClientStore:
    return registry.for_actor(actor)


class InFlightOperations:
    """
    Rejects a lifecycle request for a client that already has one running.

    The store itself does not serialize; this is the caller-side guard.
    """

    def __init__(self) -> None:
        self._busy: set[str] = set()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def claim(self, client_id: str) -> AsyncIterator[None]:
        async with self._lock:
            if client_id in self._busy:
                logger.warning("Overlapping client operation rejected", client_id=client_id)
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Another operation on this client is in progress",
                )
            self._busy.add(client_id)
        try:
            yield
        finally:
            self._busy.discard(client_id)


in_flight_operations = InFlightOperations()


def get_in_flight_operations() -> InFlightOperations:
    return in_flight_operations


_FAILURE_STATUS = {
    FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.PERSISTENCE: status.HTTP_502_BAD_GATEWAY,
}


def raise_for_outcome(outcome: MutationOutcome) -> MutationOutcome:
    """Return a successful outcome unchanged, raise the matching HTTP error otherwise."""
    if outcome.ok:
        return outcome
    failure = FailureKind(outcome.failure) if outcome.failure else FailureKind.PERSISTENCE
    raise HTTPException(status_code=_FAILURE_STATUS[failure], detail=outcome.message)
