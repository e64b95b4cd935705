"""
Authorization resolver.

Every allow/deny decision in the service goes through this module. It is
evaluated synchronously from the resident actor and the static role
table, so it cannot fail: absence of a capability or role is ``False``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from lexcore.core.rbac import (
    capabilities_of,
    is_full_access,
    normalize_capabilities,
    normalize_roles,
    parse_role,
)


def _role_of(actor: Any) -> Any:
    if actor is None:
        return None
    if isinstance(actor, dict):
        return actor.get("role")
    return getattr(actor, "role", None)


class PermissionResolver(ABC):
    @abstractmethod
    def resolve_capabilities(self, actor: Any) -> frozenset[str]:
        raise NotImplementedError


class RoleTablePermissionResolver(PermissionResolver):
    def resolve_capabilities(self, actor: Any) -> frozenset[str]:
        return capabilities_of(_role_of(actor))


permission_resolver: PermissionResolver = RoleTablePermissionResolver()


def allows(actor: Any, required_capabilities: Optional[Iterable[str]] = None) -> bool:
    """
    Capability check.

    True when the actor holds a full-access role, when no capability is
    required (an empty requirement means "no restriction", not "deny
    all"), or when the actor holds at least one required capability.
    """
    if actor is None:
        return False
    if is_full_access(_role_of(actor)):
        return True
    required = normalize_capabilities(required_capabilities)
    if not required:
        return True
    return not required.isdisjoint(permission_resolver.resolve_capabilities(actor))


def allows_role(actor: Any, required_roles: Optional[Iterable[Any]] = None) -> bool:
    """Role check: full-access role, empty requirement, or literal membership."""
    if actor is None:
        return False
    role = parse_role(_role_of(actor))
    if is_full_access(role):
        return True
    required = normalize_roles(required_roles)
    if not required:
        return True
    return role.value in required


def can_access(
    actor: Any,
    required_capabilities: Optional[Iterable[str]] = None,
    required_roles: Optional[Iterable[Any]] = None,
) -> bool:
    """
    Combined check used by guards: capability path OR role path.

    A unit gated only by roles is not opened by the empty capability
    requirement, and vice versa; each path counts only when the unit
    declares something for it. A unit declaring nothing is open.
    """
    if actor is None:
        return False
    if is_full_access(_role_of(actor)):
        return True
    capabilities = normalize_capabilities(required_capabilities)
    roles = normalize_roles(required_roles)
    if not capabilities and not roles:
        return True
    if capabilities and allows(actor, capabilities):
        return True
    if roles and allows_role(actor, roles):
        return True
    return False
