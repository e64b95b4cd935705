"""
Navigation and route protection catalogues.
"""

from __future__ import annotations

from typing import Optional

from lexcore.core.permission_resolver import can_access
from lexcore.schemas.access import NavigationEntry
from lexcore.schemas.actor import Actor

NAVIGATION: tuple[NavigationEntry, ...] = (
    NavigationEntry(title="Dashboard", path="/dashboard"),
    NavigationEntry(title="Clients", path="/clients", capabilities=["view:clients"]),
    NavigationEntry(title="Cases", path="/cases", capabilities=["view:cases"]),
    NavigationEntry(title="Documents", path="/documents", capabilities=["view:documents"]),
    NavigationEntry(title="Files", path="/files", roles=["attorney"]),
    NavigationEntry(title="Medical", path="/medical", capabilities=["view:medical"], roles=["attorney"]),
    NavigationEntry(title="Billing", path="/billing", capabilities=["view:billing"], roles=["attorney"]),
    NavigationEntry(title="Calculator", path="/calculator", roles=["attorney"]),
    NavigationEntry(title="Reports", path="/reports", capabilities=["view:reports"]),
    NavigationEntry(title="Calendar", path="/calendar", capabilities=["view:calendar"]),
    NavigationEntry(title="Messages", path="/messages", capabilities=["view:messages"], roles=["attorney"]),
    NavigationEntry(title="Admin", path="/admin", capabilities=["admin:access"]),
    NavigationEntry(title="Depositions", path="/depositions", capabilities=["view:depositions"], roles=["attorney"]),
    NavigationEntry(title="Attorneys", path="/attorneys", capabilities=["manage:users"]),
    NavigationEntry(title="Settings", path="/settings"),
)

# Protected views. Paths not listed only need an established session.
ROUTE_REQUIREMENTS: dict[str, dict[str, list[str]]] = {
    "/admin": {"capabilities": ["admin:access"], "roles": ["admin"]},
    "/attorneys": {"capabilities": ["manage:users"], "roles": ["admin", "superadmin"]},
    "/super-admin": {"capabilities": ["manage:system"], "roles": ["superadmin"]},
}


def _normalize_path(path: str) -> str:
    path = "/" + (path or "").strip().lstrip("/")
    path = path.split("?", 1)[0]
    return path.rstrip("/") or "/"


def route_requirements(path: str) -> dict[str, list[str]]:
    """Requirements for ``path``; nested paths inherit their section's entry."""
    normalized = _normalize_path(path)
    for prefix, requirements in ROUTE_REQUIREMENTS.items():
        if normalized == prefix or normalized.startswith(prefix + "/"):
            return requirements
    return {"capabilities": [], "roles": []}


def visible_navigation(actor: Optional[Actor]) -> list[NavigationEntry]:
    if actor is None:
        return []
    return [entry for entry in NAVIGATION if can_access(actor, entry.capabilities, entry.roles)]
