"""Async SQLAlchemy session factory."""
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.change_feed import discard_staged_changes, publish_staged_changes
from core.config import get_settings
from models.base import Base


def engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict[str, Any]:
    """Engine keyword arguments for the given backend (SQLite has no sized pool)."""
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
    }


settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=False,
    **engine_options(settings.database_url, settings.db_pool_size, settings.db_max_overflow),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_models() -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield an async database session.

    Uses unit-of-work pattern: services use flush() for refreshing objects,
    commit happens once here at request end. This ensures atomic transactions
    per request - if anything fails, all changes are rolled back.

    Changes staged for the realtime feed are published only after the commit
    succeeds and are dropped on rollback.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            discard_staged_changes(session)
            await session.rollback()
            raise
        await publish_staged_changes(session)
