"""Fixtures for API tests that authenticate with real bearer tokens."""
import time
from collections.abc import AsyncGenerator, Callable
from typing import Any

import jwt
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings

TEST_JWT_SECRET = "test-jwt-secret-for-hs256-signing-only"


def make_token(
    sub: str | None,
    email: str | None = None,
    secret: str = TEST_JWT_SECRET,
    audience: str = "authenticated",
    expires_in: int = 3600,
    **claims: Any,
) -> str:
    """Mint an HS256 token shaped like the ones the identity provider issues."""
    payload: dict[str, Any] = {"aud": audience, "exp": int(time.time()) + expires_in, **claims}
    if sub is not None:
        payload["sub"] = sub
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def token_factory() -> Callable[..., str]:
    """Factory for signed test tokens."""
    return make_token


@pytest.fixture
async def auth_app(database_url: str, db_session: AsyncSession) -> AsyncGenerator[FastAPI]:
    """
    The app with DEV_MODE off and tokens verified against a test secret.

    Dependency overrides are app-global, so every client built by
    `client_factory` in one test shares this configuration.
    """
    from core.config import get_settings

    get_settings.cache_clear()

    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    def override_get_settings() -> Settings:
        return Settings(
            _env_file=None,
            database_url=database_url,
            dev_mode=False,
            auth_jwt_secret=TEST_JWT_SECRET,
        )

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_settings] = override_get_settings
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client_factory(auth_app: FastAPI) -> AsyncGenerator[Callable[[str | None], AsyncClient]]:
    """Build clients that send the given bearer token (or none)."""
    clients: list[AsyncClient] = []

    def _make(token: str | None) -> AsyncClient:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        test_client = AsyncClient(
            transport=ASGITransport(app=auth_app),
            base_url="http://test",
            headers=headers,
        )
        clients.append(test_client)
        return test_client

    yield _make

    for test_client in clients:
        await test_client.aclose()
