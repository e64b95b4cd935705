"""
Base CRUD Repository
Generic async repository shared by the store-of-record tables
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from lexcore.core.database import Base

logger = structlog.get_logger()

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """
    Row-level operations for one mapped model.

    Writes commit their own transaction and roll back before re-raising,
    so a failed call never leaves a session half-written.
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    @property
    def model_name(self) -> str:
        return self.model.__name__

    def _columns(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in values.items() if hasattr(self.model, key)}

    async def get(self, db: AsyncSession, id: str) -> Optional[ModelType]:
        result = await db.execute(select(self.model).where(self.model.id == str(id)))
        record = result.scalar_one_or_none()
        logger.debug("Record lookup", model=self.model_name, id=id, found=record is not None)
        return record

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> List[ModelType]:
        """
        Records matching equality ``filters``.

        ``order_by`` names a column; a leading ``-`` sorts descending.
        Unknown filter or order columns are ignored.
        """
        query = select(self.model)
        for field, value in self._columns(filters or {}).items():
            query = query.where(getattr(self.model, field) == value)

        if order_by:
            descending = order_by.startswith("-")
            column = getattr(self.model, order_by.lstrip("-"), None)
            if column is not None:
                query = query.order_by(column.desc() if descending else column.asc())

        result = await db.execute(query)
        records = list(result.scalars().all())
        logger.debug("Records listed", model=self.model_name, count=len(records))
        return records

    async def create(self, db: AsyncSession, *, obj_in: Dict[str, Any]) -> ModelType:
        db_obj = self.model(**self._columns(obj_in))
        db.add(db_obj)
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Insert failed", model=self.model_name, error=str(e))
            raise
        await db.refresh(db_obj)
        logger.info("Record created", model=self.model_name, id=db_obj.id)
        return db_obj

    async def update(self, db: AsyncSession, *, db_obj: ModelType, obj_in: Dict[str, Any]) -> ModelType:
        for field, value in self._columns(obj_in).items():
            setattr(db_obj, field, value)
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Update failed", model=self.model_name, id=db_obj.id, error=str(e))
            raise
        # Server-side values (timestamps) are only visible after a reload
        await db.refresh(db_obj)
        logger.info("Record updated", model=self.model_name, id=db_obj.id, fields=sorted(obj_in))
        return db_obj

    async def delete(self, db: AsyncSession, *, id: str) -> Optional[ModelType]:
        """Hard delete. Returns the removed record, or None when there was none."""
        db_obj = await self.get(db, id=id)
        if db_obj is None:
            logger.warning("Record not found for deletion", model=self.model_name, id=id)
            return None
        await db.delete(db_obj)
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Delete failed", model=self.model_name, id=id, error=str(e))
            raise
        logger.info("Record deleted", model=self.model_name, id=id)
        return db_obj
