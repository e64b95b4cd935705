"""
Shared columns for store-of-record tables
"""

import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from lexcore.core.database import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class RecordBase(Base, TimestampMixin):
    """Abstract base: string UUID key so the same schema runs on SQLite and PostgreSQL"""
    __abstract__ = True

    id = Column(String(36), primary_key=True, default=generate_uuid, nullable=False)
