"""
Access Endpoints
Current actor summary and guard decisions for the view layer
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends
import structlog

from lexcore.core.deps import get_current_actor, get_optional_actor
from lexcore.core.guards import inline_allows, resolve_route_access
from lexcore.core.identity import SessionStatus
from lexcore.core.permission_resolver import can_access, permission_resolver
from lexcore.core.rbac import is_full_access
from lexcore.schemas.access import (
    AccessCheckRequest,
    ActorAccessSummary,
    DenialReason,
    GuardDecision,
    GuardState,
)
from lexcore.schemas.actor import Actor
from lexcore.services.navigation import route_requirements, visible_navigation

logger = structlog.get_logger()
router = APIRouter()


@router.get("/me", response_model=ActorAccessSummary)
async def read_access_summary(current_actor: Actor = Depends(get_current_actor)) -> Any:
    """Actor, resolved capabilities and the navigation entries it may see."""
    return ActorAccessSummary(
        actor=current_actor,
        full_access=is_full_access(current_actor.role),
        capabilities=sorted(permission_resolver.resolve_capabilities(current_actor)),
        navigation=visible_navigation(current_actor),
    )


@router.post("/check", response_model=GuardDecision)
async def check_access(
    check_in: AccessCheckRequest,
    current_actor: Actor = Depends(get_current_actor),
) -> Any:
    """Evaluate a fragment or action requirement for the current actor."""
    if check_in.inline:
        allowed = inline_allows(current_actor, check_in.capabilities, check_in.roles)
    else:
        allowed = can_access(current_actor, check_in.capabilities, check_in.roles)

    logger.debug(
        "Access check",
        actor_id=current_actor.id,
        capabilities=check_in.capabilities,
        roles=check_in.roles,
        inline=check_in.inline,
        allowed=allowed,
    )
    if allowed:
        return GuardDecision(state=GuardState.GRANTED)
    return GuardDecision(state=GuardState.DENIED, reason=DenialReason.UNAUTHORIZED)


@router.get("/routes/{path:path}", response_model=GuardDecision)
async def check_route(
    path: str,
    current_actor: Optional[Actor] = Depends(get_optional_actor),
) -> Any:
    """Route-guard decision for navigating to ``path``. Denials carry the redirect."""
    location = "/" + path.lstrip("/")
    requirements = route_requirements(location)
    return resolve_route_access(
        SessionStatus.ESTABLISHED if current_actor else SessionStatus.NONE,
        current_actor,
        capabilities=requirements["capabilities"],
        roles=requirements["roles"],
        location=location,
    )
