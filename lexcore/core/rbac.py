"""
RBAC helpers and canonical capability definitions for LexCore.

Capabilities are namespaced ``verb:object`` strings checked by plain set
membership. They are never combined or negated.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    ATTORNEY = "attorney"
    CLIENT = "client"


# Roles that satisfy every capability and role check without a table lookup.
FULL_ACCESS_ROLES: frozenset[Role] = frozenset({Role.SUPERADMIN, Role.ADMIN})

LEAST_PRIVILEGED_ROLE = Role.CLIENT

ADMIN_CAPABILITY_NAMESPACE = "admin"

ATTORNEY_CAPABILITIES: frozenset[str] = frozenset({
    "view:clients", "edit:clients",
    "view:cases", "create:cases", "edit:cases",
    "view:documents", "upload:documents", "download:documents",
    "view:calendar", "create:events", "edit:events",
    "view:reports",
})

# Client portal allow-list. Inline guards grant client actors nothing outside it.
CLIENT_PORTAL_CAPABILITIES: frozenset[str] = frozenset({
    "view:documents", "upload:documents", "download:documents",
    "view:calendar", "view:appointments",
    "view:messages", "send:messages",
})

ADMIN_CAPABILITIES: frozenset[str] = frozenset({
    "view:users", "create:users", "edit:users", "delete:users", "manage:users",
    "view:clients", "create:clients", "edit:clients", "delete:clients",
    "transfer:clients", "drop:clients",
    "view:cases", "create:cases", "edit:cases", "delete:cases",
    "view:documents", "upload:documents", "download:documents", "delete:documents",
    "view:calendar", "create:events", "edit:events", "delete:events",
    "view:reports", "create:reports",
    "view:billing", "edit:billing",
    "view:medical", "view:depositions",
    "admin:access", "access:all",
})

SUPERADMIN_CAPABILITIES: frozenset[str] = ADMIN_CAPABILITIES | frozenset({
    "manage:firms", "manage:admins", "manage:system", "view:all",
})

ROLE_CAPABILITIES: dict[Role, frozenset[str]] = {
    Role.SUPERADMIN: SUPERADMIN_CAPABILITIES,
    Role.ADMIN: ADMIN_CAPABILITIES,
    Role.ATTORNEY: ATTORNEY_CAPABILITIES,
    Role.CLIENT: CLIENT_PORTAL_CAPABILITIES,
}

ALL_CAPABILITIES: frozenset[str] = frozenset().union(*ROLE_CAPABILITIES.values())


def parse_role(value: Any) -> Role:
    """
    Coerce a raw role value into the closed role enum.

    Unrecognized or missing roles resolve to the least-privileged role so
    that a malformed actor fails closed.
    """
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value.strip().lower())
        except ValueError:
            pass
    return LEAST_PRIVILEGED_ROLE


def is_full_access(role: Any) -> bool:
    return parse_role(role) in FULL_ACCESS_ROLES


def capabilities_of(role: Any) -> frozenset[str]:
    """Return the capability set of ``role``. Total over any input."""
    return ROLE_CAPABILITIES[parse_role(role)]


def capability_namespace(capability: str) -> str:
    """``admin:manage-firms`` -> ``admin``"""
    return capability.split(":", 1)[0].strip().lower()


def normalize_capabilities(capabilities: Any) -> frozenset[str]:
    if not capabilities:
        return frozenset()
    if isinstance(capabilities, str):
        capabilities = [capabilities]
    return frozenset(c.strip().lower() for c in capabilities if c and c.strip())


def normalize_roles(roles: Any) -> frozenset[str]:
    """Normalize declared role requirements to lower-case role names."""
    if not roles:
        return frozenset()
    if isinstance(roles, (str, Role)):
        roles = [roles]
    return frozenset(
        role.value if isinstance(role, Role) else str(role).strip().lower()
        for role in roles
        if role and str(role).strip()
    )
