"""
SQL-backed client persistence provider.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lexcore.models.client import ClientRecord
from lexcore.repositories.client import ClientRepository, client_repository
from lexcore.schemas.client import Client
from lexcore.services.providers import ClientPersistenceProvider, ProviderError, RecordNotFoundError

logger = structlog.get_logger()


def record_to_client(record: ClientRecord) -> Client:
    try:
        return Client.model_validate(record.to_dict())
    except ValidationError as exc:
        logger.error("Stored client record is inconsistent", client_id=record.id, error=str(exc))
        raise ProviderError(f"Stored client {record.id} is inconsistent") from exc


class SqlClientPersistence(ClientPersistenceProvider):
    """Each call runs in its own session so a failed call leaves nothing half-written."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: ClientRepository = client_repository,
    ) -> None:
        self._session_factory = session_factory
        self._repository = repository

    async def list(self) -> list[Client]:
        try:
            async with self._session_factory() as db:
                records = await self._repository.list_all(db)
                return [record_to_client(record) for record in records]
        except SQLAlchemyError as exc:
            raise ProviderError("Failed to list clients") from exc

    async def get(self, client_id: str) -> Optional[Client]:
        try:
            async with self._session_factory() as db:
                record = await self._repository.get(db, id=client_id)
                return record_to_client(record) if record else None
        except SQLAlchemyError as exc:
            raise ProviderError(f"Failed to load client {client_id}") from exc

    async def insert(self, data: dict[str, Any]) -> Client:
        values = dict(data)
        values["is_dropped"] = False
        values.pop("dropped_date", None)
        values.pop("dropped_reason", None)
        if values.get("email"):
            values["email"] = values["email"].lower().strip()
        try:
            async with self._session_factory() as db:
                record = await self._repository.create(db, obj_in=values)
                return record_to_client(record)
        except SQLAlchemyError as exc:
            raise ProviderError("Failed to create client") from exc

    async def update(self, client_id: str, patch: dict[str, Any]) -> Client:
        try:
            async with self._session_factory() as db:
                record = await self._repository.get(db, id=client_id)
                if record is None:
                    raise RecordNotFoundError(client_id)
                record = await self._repository.apply_patch(db, db_obj=record, patch=patch)
                return record_to_client(record)
        except SQLAlchemyError as exc:
            raise ProviderError(f"Failed to update client {client_id}") from exc

    async def delete(self, client_id: str) -> None:
        try:
            async with self._session_factory() as db:
                deleted = await self._repository.delete(db, id=client_id)
        except SQLAlchemyError as exc:
            raise ProviderError(f"Failed to delete client {client_id}") from exc
        if deleted is None:
            raise RecordNotFoundError(client_id)
