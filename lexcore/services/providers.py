"""
Collaborator seams for the client lifecycle core.

The store of record and the linked-account service are external to the
core; the store talks to them only through these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from lexcore.schemas.client import Client


class ProviderError(Exception):
    """A collaborator call was rejected or could not be completed."""


class RecordNotFoundError(ProviderError):
    """The store of record has no client with the requested id."""

    def __init__(self, client_id: str) -> None:
        super().__init__(f"Client {client_id} not found")
        self.client_id = client_id


class AccountProviderError(ProviderError):
    """The linked-account service rejected a request."""


class ClientPersistenceProvider(ABC):
    @abstractmethod
    async def list(self) -> list[Client]:
        raise NotImplementedError

    @abstractmethod
    async def get(self, client_id: str) -> Optional[Client]:
        raise NotImplementedError

    @abstractmethod
    async def insert(self, data: dict[str, Any]) -> Client:
        raise NotImplementedError

    @abstractmethod
    async def update(self, client_id: str, patch: dict[str, Any]) -> Client:
        """Apply ``patch`` and return the record as persisted.

        A patch setting ``is_dropped`` to true must come back with
        ``dropped_date`` stamped by the store of record.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, client_id: str) -> None:
        raise NotImplementedError


class AccountProvider(ABC):
    @abstractmethod
    async def provision_account(self, *, email: str, password: str, full_name: str) -> str:
        """Create a client login account and return its id."""
        raise NotImplementedError

    @abstractmethod
    async def update_account_password(self, account_id: str, password: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_account(self, account_id: str) -> None:
        raise NotImplementedError
