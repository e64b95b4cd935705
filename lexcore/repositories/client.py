"""
Client Repository
Database operations for client records.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from lexcore.models.client import ClientRecord
from lexcore.repositories.base import CRUDBase

logger = structlog.get_logger()


class ClientRepository(CRUDBase[ClientRecord]):
    async def list_all(self, db: AsyncSession) -> list[ClientRecord]:
        return await self.get_multi(db, order_by="-created_at")

    async def apply_patch(self, db: AsyncSession, *, db_obj: ClientRecord, patch: dict[str, Any]) -> ClientRecord:
        """Update a record; the drop timestamp is always stamped here, never by the caller."""
        values = dict(patch)
        values.pop("dropped_date", None)
        if values.get("is_dropped") and not db_obj.is_dropped:
            values["dropped_date"] = func.now()
        values["updated_at"] = func.now()
        return await self.update(db, db_obj=db_obj, obj_in=values)


client_repository = ClientRepository(ClientRecord)
