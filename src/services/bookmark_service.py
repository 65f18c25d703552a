"""Service layer for bookmark CRUD operations."""
import logging
from urllib.parse import urlsplit
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.change_feed import stage_change
from core.config import get_settings
from models.bookmark import DEFAULT_CATEGORY, Bookmark
from schemas.bookmark import (
    BookmarkChange,
    BookmarkCreate,
    BookmarkKey,
    BookmarkResponse,
    ChangeEvent,
)

logger = logging.getLogger(__name__)


class BookmarkStoreError(Exception):
    """Raised when the database rejects or fails a bookmark operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


def _store_error(operation: str, error: SQLAlchemyError) -> BookmarkStoreError:
    logger.exception("Failed to %s bookmark", operation)
    orig = getattr(error, "orig", None)
    return BookmarkStoreError(str(orig) if orig is not None else str(error))


def derive_title(url: str, title: str | None = None) -> str:
    """
    Title to store for a new bookmark.

    A non-blank title wins. Otherwise the URL's hostname with a leading "www."
    removed, or the raw URL when it has no parseable hostname.
    """
    if title and title.strip():
        return title.strip()
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        hostname = None
    if not hostname:
        return url
    return hostname.removeprefix("www.")


async def create_bookmark(
    db: AsyncSession,
    user_id: UUID,
    data: BookmarkCreate,
) -> Bookmark:
    """
    Create a new bookmark for a user.

    Blank titles are derived from the URL and blank categories default to
    "general". The INSERT change is staged for the realtime feed.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    settings = get_settings()
    title = derive_title(data.url, data.title)[: settings.max_title_length]

    bookmark = Bookmark(
        user_id=user_id,
        url=data.url,
        title=title,
        category=data.category or DEFAULT_CATEGORY,
    )
    db.add(bookmark)
    try:
        await db.flush()
        await db.refresh(bookmark)
    except SQLAlchemyError as e:
        raise _store_error("create", e) from e

    stage_change(
        db,
        BookmarkChange(
            event=ChangeEvent.INSERT,
            user_id=user_id,
            new=BookmarkResponse.model_validate(bookmark),
        ),
    )
    return bookmark


async def get_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> Bookmark | None:
    """Get a bookmark by ID, scoped to user. Returns None if not found or wrong user."""
    try:
        result = await db.execute(
            select(Bookmark).where(
                Bookmark.id == bookmark_id,
                Bookmark.user_id == user_id,
            ),
        )
    except SQLAlchemyError as e:
        raise _store_error("load", e) from e
    return result.scalar_one_or_none()


async def get_bookmarks(
    db: AsyncSession,
    user_id: UUID,
) -> list[Bookmark]:
    """Get all bookmarks for a user, newest first."""
    try:
        result = await db.execute(
            select(Bookmark)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc()),
        )
    except SQLAlchemyError as e:
        raise _store_error("list", e) from e
    return list(result.scalars().all())


async def delete_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> bool:
    """
    Delete a bookmark. Returns True if deleted, False if not found or owned by another user.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        return False

    try:
        await db.delete(bookmark)
        await db.flush()
    except SQLAlchemyError as e:
        raise _store_error("delete", e) from e

    stage_change(
        db,
        BookmarkChange(
            event=ChangeEvent.DELETE,
            user_id=user_id,
            old=BookmarkKey(id=bookmark_id),
        ),
    )
    return True
