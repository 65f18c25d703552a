"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from models.base import Base
from models.user import User

# Must be set before any app imports that trigger Settings validation.
# An in-memory SQLite database by default; point TEST_DATABASE_URL at a local
# Postgres to run the same suite against it.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
# Ensure tests run in dev mode (bypasses auth) regardless of local .env
os.environ["DEV_MODE"] = "true"
# Realtime fan-out stays in-process
os.environ["REDIS_ENABLED"] = "false"


@pytest.fixture
def database_url() -> str:
    """Database URL the test engine connects to."""
    return TEST_DATABASE_URL


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """
    Create an async engine with a fresh schema.

    In-memory SQLite lives as long as its connection, so every session shares
    one connection through StaticPool.
    """
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create an async session for direct database access in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A user that owns bookmarks created directly through the service layer."""
    user = User(auth_id="test|user-1", email="user1@example.com")
    db_session.add(user)
    await db_session.flush()
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second user, for ownership isolation checks."""
    user = User(auth_id="test|user-2", email="user2@example.com")
    db_session.add(user)
    await db_session.flush()
    return user


@pytest.fixture
async def client(
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session override."""
    # Clear the settings cache so it picks up DATABASE_URL from environment
    from core.config import get_settings

    get_settings.cache_clear()

    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
