"""
Shared fixtures for the LexCore test suite
"""

import time
from datetime import datetime, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest
from joserfc import jwt
from joserfc.jwk import OctKey

from lexcore.core.simple_config import JWT_CONFIG
from lexcore.schemas.actor import Actor
from lexcore.schemas.client import Client
from lexcore.services.providers import (
    AccountProvider,
    ClientPersistenceProvider,
    RecordNotFoundError,
)


def make_client(client_id: str = "c-100", **overrides: Any) -> Client:
    now = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    data = {
        "id": client_id,
        "full_name": f"Client {client_id}",
        "email": f"{client_id}@example.com",
        "phone": "555-0100",
        "tags": [],
        "assigned_attorney_id": "att-1",
        "is_dropped": False,
        "created_at": now,
        "updated_at": now,
    }
    if overrides.get("is_dropped"):
        data["dropped_date"] = now
        data["dropped_reason"] = "Moved away"
    data.update(overrides)
    return Client.model_validate(data)


class FakePersistence(ClientPersistenceProvider):
    """In-memory store of record that behaves like the SQL provider."""

    def __init__(self, clients: Optional[list[Client]] = None) -> None:
        self.records: dict[str, Client] = {c.id: c for c in clients or []}
        self.calls: list[tuple] = []
        self._next_id = 1

    async def list(self) -> list[Client]:
        self.calls.append(("list",))
        return list(self.records.values())

    async def get(self, client_id: str) -> Optional[Client]:
        return self.records.get(client_id)

    async def insert(self, data: dict[str, Any]) -> Client:
        self.calls.append(("insert", data))
        now = datetime.now(timezone.utc)
        client_id = f"new-{self._next_id}"
        self._next_id += 1
        client = Client.model_validate({**data, "id": client_id, "created_at": now, "updated_at": now})
        self.records[client_id] = client
        return client

    async def update(self, client_id: str, patch: dict[str, Any]) -> Client:
        self.calls.append(("update", client_id, patch))
        current = self.records.get(client_id)
        if current is None:
            raise RecordNotFoundError(client_id)
        values = current.model_dump()
        values.update(patch)
        if patch.get("is_dropped") and not current.is_dropped:
            values["dropped_date"] = datetime.now(timezone.utc)
        values["updated_at"] = datetime.now(timezone.utc)
        updated = Client.model_validate(values)
        self.records[client_id] = updated
        return updated

    async def delete(self, client_id: str) -> None:
        self.calls.append(("delete", client_id))
        if self.records.pop(client_id, None) is None:
            raise RecordNotFoundError(client_id)


@pytest.fixture
def persistence():
    return FakePersistence([
        make_client("c-1", full_name="Ada Lovelace", email="ada@example.com", tags=["vip"]),
        make_client("c-2", full_name="Grace Hopper", email="grace@example.com", account_id="acct-2"),
        make_client("c-3", full_name="Alan Turing", is_dropped=True),
    ])


@pytest.fixture
def accounts():
    provider = AsyncMock(spec=AccountProvider)
    provider.provision_account.return_value = "acct-new"
    provider.update_account_password.return_value = None
    provider.delete_account.return_value = None
    return provider


@pytest.fixture
def admin_actor():
    return Actor(id="u-admin", email="admin@firm.test", role="admin")


@pytest.fixture
def superadmin_actor():
    return Actor(id="u-root", email="root@firm.test", role="superadmin")


@pytest.fixture
def attorney_actor():
    return Actor(id="u-att", email="counsel@firm.test", role="attorney")


@pytest.fixture
def client_actor():
    return Actor(id="u-client", email="portal@example.com", role="client")


def issue_token(actor: Actor, *, issuer: Optional[str] = None, expires_in: int = 900, **extra: Any) -> str:
    claims = {
        "sub": actor.id,
        "email": actor.email,
        "role": actor.role,
        "type": "access",
        "iss": issuer or JWT_CONFIG["issuer"],
        "exp": int(time.time()) + expires_in,
        **extra,
    }
    key = OctKey.import_key(JWT_CONFIG["secret_key"])
    return jwt.encode({"alg": JWT_CONFIG["algorithm"]}, claims, key)


def auth_headers(actor: Actor, **kwargs: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(actor, **kwargs)}"}
