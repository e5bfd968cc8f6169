from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.config import settings

logger = logging.getLogger(__name__)

# Unset until init_database runs with a URL.
engine: AsyncEngine | None = None
async_session: async_sessionmaker[AsyncSession] | None = None


async def init_database(database_url: str | None = None) -> None:
    """Initialize database connection if DATABASE_URL is provided."""
    global engine, async_session

    url = database_url or settings.database_url
    if not url:
        logger.info("database.disabled", extra={"reason": "no DATABASE_URL"})
        return

    try:
        engine_kwargs: dict = {"echo": settings.debug}
        if not url.startswith("sqlite"):
            engine_kwargs.update(pool_pre_ping=True, pool_recycle=300)
        engine = create_async_engine(url, **engine_kwargs)

        async_session = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        if settings.database_auto_create:
            await create_schema()

        logger.info("database.ready", extra={"dialect": engine.dialect.name})

    except Exception as e:
        logger.error("database.init_failed", extra={"error": type(e).__name__})
        raise


async def create_schema() -> None:
    """Create the companies/clusters/ads tables when they do not exist."""
    if engine is None:
        return
    # Registers the table metadata.
    import app.models.records  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_database() -> None:
    global engine, async_session
    if engine is not None:
        await engine.dispose()
    engine = None
    async_session = None


async def check_database_health() -> bool:
    """Check if database is accessible."""
    if not engine:
        return True  # No database configured, consider healthy

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("database.health_failed", extra={"error": type(e).__name__})
        return False
