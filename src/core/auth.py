"""Authentication module for bearer JWT validation."""
import logging
from typing import Any

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.session import get_async_session
from models.user import User

logger = logging.getLogger(__name__)


# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

# Cache for JWKS client (reuse across requests)
_jwks_clients: dict[str, PyJWKClient] = {}

DEV_AUTH_ID = "dev|local-development-user"


def get_jwks_client(settings: Settings) -> PyJWKClient:
    """Get or create a cached JWKS client for the given settings."""
    if settings.auth_jwks_url not in _jwks_clients:
        _jwks_clients[settings.auth_jwks_url] = PyJWKClient(
            settings.auth_jwks_url,
            cache_jwk_set=True,
            lifespan=3600,  # Cache keys for 1 hour
        )
    return _jwks_clients[settings.auth_jwks_url]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_jwt(token: str, settings: Settings) -> dict[str, Any]:
    """
    Decode and validate a bearer JWT.

    HS256 with the shared secret when AUTH_JWT_SECRET is configured, otherwise
    RS256 with the issuer's published signing keys.

    Raises:
        HTTPException: If token is invalid, expired, or has wrong audience/issuer.
    """
    options: dict[str, Any] = {"require": ["exp", "sub"]}
    if not settings.auth_audience:
        options["verify_aud"] = False

    try:
        if settings.uses_shared_secret:
            key: Any = settings.auth_jwt_secret
            algorithms = ["HS256"]
        else:
            key = get_jwks_client(settings).get_signing_key_from_jwt(token).key
            algorithms = ["RS256"]

        return jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience=settings.auth_audience or None,
            issuer=settings.auth_issuer or None,
            options=options,
        )

    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidAudienceError:
        raise _unauthorized("Invalid audience")
    except jwt.InvalidIssuerError:
        raise _unauthorized("Invalid issuer")
    except jwt.PyJWKClientConnectionError as e:
        logger.error("Failed to fetch signing keys: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not validate credentials",
        )
    except jwt.PyJWTError as e:
        # Log full details for debugging (server-side only)
        logger.warning("JWT validation failed: %s", e, exc_info=True)
        raise _unauthorized("Invalid token")


async def get_or_create_user(
    db: AsyncSession,
    auth_id: str,
    email: str | None = None,
) -> User:
    """
    Get existing user or create new one from token claims.

    Handles race conditions where multiple concurrent requests may try to create
    the same user simultaneously: on IntegrityError (unique auth_id) the session
    is rolled back and the existing user fetched.

    Note: Uses flush(), not commit. Session generator handles commit at request end.
    """
    result = await db.execute(select(User).where(User.auth_id == auth_id))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(auth_id=auth_id, email=email)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Another request created the user between our SELECT and INSERT.
            await db.rollback()
            result = await db.execute(select(User).where(User.auth_id == auth_id))
            user = result.scalar_one()

    if email and user.email != email:
        user.email = email
        await db.flush()

    return user


async def get_or_create_dev_user(db: AsyncSession) -> User:
    """Get or create a development user for DEV_MODE."""
    return await get_or_create_user(db, auth_id=DEV_AUTH_ID, email="dev@localhost")


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Dependency that validates the bearer token and returns the current user.

    Rejects with 401 before any bookmark data is touched. In DEV_MODE, bypasses
    auth and returns a local development user.
    """
    if settings.dev_mode:
        return await get_or_create_dev_user(db)

    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_jwt(credentials.credentials, settings)

    auth_id = payload.get("sub")
    if not auth_id:
        raise _unauthorized("Invalid token: missing sub claim")

    return await get_or_create_user(db, auth_id=auth_id, email=payload.get("email"))
