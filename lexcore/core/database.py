"""
Store of record connection
Async engine and session factory for the clients table
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
import structlog

from lexcore.core.simple_config import DATABASE_CONFIG, settings

logger = structlog.get_logger()

_ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite:///": "sqlite+aiosqlite:///",
}


def async_database_url(url: str) -> str:
    """Point plain postgres/sqlite URLs at their async drivers."""
    for prefix, async_prefix in _ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return async_prefix + url[len(prefix):]
    return url


def engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = dict(DATABASE_CONFIG)
    if url.startswith("postgresql"):
        options["connect_args"] = {"server_settings": {"application_name": "lexcore"}}
    return options


database_url = async_database_url(settings.DATABASE_URL)
engine = create_async_engine(database_url, **engine_options(database_url))

# One session per store-of-record call; records stay readable after commit
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def check_database_health() -> bool:
    try:
        async with engine.connect() as conn:
            return (await conn.execute(text("SELECT 1"))).scalar() == 1
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False


async def init_database():
    """
    Create the clients table if missing
    Called from the application lifespan
    """
    from lexcore.models import client  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error("Database initialization failed", url=engine.url.render_as_string(hide_password=True), error=str(e))
        raise
    logger.info("Database initialized", tables=sorted(Base.metadata.tables))


async def close_database():
    await engine.dispose()
    logger.info("Database connections closed")
