"""
View guards.

``RouteGuard`` protects a whole view: it waits for the session signal,
then grants, or denies with a redirect. ``InlineGuard`` protects a
fragment of a view: same allow logic plus the organisational policy for
attorneys and client-portal users, and on deny it renders a fallback
instead of navigating.

Both delegate the allow decision to ``permission_resolver.can_access``.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional
from urllib.parse import quote

import structlog

from lexcore.core.identity import IdentityProvider, SessionStatus
from lexcore.core.permission_resolver import can_access
from lexcore.core.rbac import (
    ADMIN_CAPABILITY_NAMESPACE,
    CLIENT_PORTAL_CAPABILITIES,
    FULL_ACCESS_ROLES,
    Role,
    capability_namespace,
    normalize_capabilities,
    normalize_roles,
    parse_role,
)
from lexcore.core.simple_config import settings
from lexcore.schemas.access import DenialReason, GuardDecision, GuardState
from lexcore.schemas.actor import Actor

logger = structlog.get_logger()

SIGN_IN_NOTICE = "Authentication required. Please log in to access this page."
UNAUTHORIZED_NOTICE = "Access denied. You do not have permission to view this page."

Notifier = Callable[[str], None]
Navigator = Callable[[str], None]

_FULL_ACCESS_ROLE_NAMES = frozenset(role.value for role in FULL_ACCESS_ROLES)


def sign_in_location(requested_location: str) -> str:
    """Sign-in entry point carrying the location to restore after authentication."""
    return f"{settings.SIGN_IN_PATH}?next={quote(requested_location or '/', safe='/')}"


def resolve_route_access(
    session_status: SessionStatus,
    actor: Optional[Actor],
    *,
    capabilities: Optional[Iterable[str]] = None,
    roles: Optional[Iterable[Any]] = None,
    location: str = "/",
) -> GuardDecision:
    """Pure route-guard decision for one (session, actor, location) state."""
    if session_status == SessionStatus.PENDING:
        return GuardDecision(state=GuardState.CHECKING)

    if session_status == SessionStatus.NONE or actor is None:
        return GuardDecision(
            state=GuardState.DENIED,
            reason=DenialReason.NO_SESSION,
            redirect_to=sign_in_location(location),
            notice=SIGN_IN_NOTICE,
        )

    if can_access(actor, capabilities, roles):
        return GuardDecision(state=GuardState.GRANTED)

    return GuardDecision(
        state=GuardState.DENIED,
        reason=DenialReason.UNAUTHORIZED,
        redirect_to=settings.DEFAULT_LANDING_PATH,
        notice=UNAUTHORIZED_NOTICE,
    )


def inline_allows(
    actor: Optional[Actor],
    capabilities: Optional[Iterable[str]] = None,
    roles: Optional[Iterable[Any]] = None,
) -> bool:
    """
    Allow decision for inline fragments.

    - Attorneys never see a fragment that names an admin role or an
      ``admin:*`` capability.
    - Client-portal users see a fragment only if it declares nothing, or
      declares a capability on the portal allow-list; declared roles are
      ignored for them.
    """
    if actor is None:
        return False

    role = parse_role(actor.role)
    required_capabilities = normalize_capabilities(capabilities)
    required_roles = normalize_roles(roles)

    if role == Role.ATTORNEY:
        if required_roles & _FULL_ACCESS_ROLE_NAMES:
            return False
        if any(capability_namespace(c) == ADMIN_CAPABILITY_NAMESPACE for c in required_capabilities):
            return False

    if role == Role.CLIENT:
        if not required_capabilities and not required_roles:
            return True
        return not required_capabilities.isdisjoint(CLIENT_PORTAL_CAPABILITIES)

    return can_access(actor, required_capabilities, required_roles)


class RouteGuard:
    """
    Route guard state machine: ``checking`` -> ``granted`` | ``denied``.

    A resolved decision is kept until the actor identity, the session
    status or the requested location changes.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        *,
        location: str,
        capabilities: Optional[Iterable[str]] = None,
        roles: Optional[Iterable[Any]] = None,
        notify: Optional[Notifier] = None,
        navigate: Optional[Navigator] = None,
    ) -> None:
        self._identity = identity
        self._location = location
        self._capabilities = normalize_capabilities(capabilities)
        self._roles = normalize_roles(roles)
        self._notify = notify
        self._navigate = navigate
        self._decision = GuardDecision(state=GuardState.CHECKING)
        self._evaluated_for: Optional[tuple] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def state(self) -> GuardState:
        return GuardState(self._decision.state)

    @property
    def decision(self) -> GuardDecision:
        return self._decision

    @property
    def location(self) -> str:
        return self._location

    def mount(self) -> GuardDecision:
        if self._unsubscribe is None:
            self._unsubscribe = self._identity.subscribe(self._on_identity_change)
        return self._evaluate()

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def set_location(self, location: str) -> GuardDecision:
        self._location = location
        return self._evaluate()

    def _on_identity_change(self, status: SessionStatus, actor: Optional[Actor]) -> None:
        self._evaluate()

    def _evaluate(self) -> GuardDecision:
        status = self._identity.session_status()
        actor = self._identity.get_current_actor()
        key = (SessionStatus(status), actor.id if actor else None, self._location)
        if key == self._evaluated_for:
            return self._decision

        decision = resolve_route_access(
            status,
            actor,
            capabilities=self._capabilities,
            roles=self._roles,
            location=self._location,
        )
        self._decision = decision
        # Pending decisions are provisional; only resolved ones are cached.
        self._evaluated_for = key if decision.state != GuardState.CHECKING else None

        if decision.state == GuardState.DENIED:
            logger.warning(
                "Route access denied",
                location=self._location,
                reason=decision.reason,
                actor_id=actor.id if actor else None,
            )
            if self._notify and decision.notice:
                self._notify(decision.notice)
            if self._navigate and decision.redirect_to:
                self._navigate(decision.redirect_to)
        elif decision.state == GuardState.GRANTED:
            logger.debug("Route access granted", location=self._location, actor_id=actor.id)

        return decision

    def render(self, content: Any, loading: Any = None) -> Any:
        """Content when granted, a loading placeholder while checking, nothing when denied."""
        if self.state == GuardState.GRANTED:
            return content
        if self.state == GuardState.CHECKING:
            return loading
        return None


class InlineGuard:
    """Non-redirecting guard for fragments inside an already-routed view."""

    def __init__(
        self,
        identity: IdentityProvider,
        *,
        capabilities: Optional[Iterable[str]] = None,
        roles: Optional[Iterable[Any]] = None,
        fallback: Any = None,
    ) -> None:
        self._identity = identity
        self._capabilities = normalize_capabilities(capabilities)
        self._roles = normalize_roles(roles)
        self.fallback = fallback

    def decision(self) -> GuardDecision:
        status = self._identity.session_status()
        if status == SessionStatus.PENDING:
            return GuardDecision(state=GuardState.CHECKING)
        actor = self._identity.get_current_actor()
        if actor is None:
            return GuardDecision(state=GuardState.DENIED, reason=DenialReason.NO_SESSION)
        if inline_allows(actor, self._capabilities, self._roles):
            return GuardDecision(state=GuardState.GRANTED)
        return GuardDecision(state=GuardState.DENIED, reason=DenialReason.UNAUTHORIZED)

    def render(self, content: Any) -> Any:
        if self.decision().state == GuardState.GRANTED:
            return content
        return self.fallback
