"""Bookmark endpoints: list, create, delete, and the realtime change stream."""
import asyncio
from collections.abc import AsyncGenerator
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, get_settings
from core.change_feed import Subscription, get_change_feed, to_sse
from core.config import Settings
from models.user import User
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkCreatedResponse,
    BookmarkListResponse,
    BookmarkResponse,
    DeleteResponse,
)
from services import bookmark_service
from services.bookmark_service import BookmarkStoreError

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """List the current user's bookmarks, newest first."""
    try:
        bookmarks = await bookmark_service.get_bookmarks(db, current_user.id)
    except BookmarkStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return BookmarkListResponse(
        bookmarks=[BookmarkResponse.model_validate(b) for b in bookmarks],
    )


@router.post("/", response_model=BookmarkCreatedResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkCreatedResponse:
    """
    Create a new bookmark.

    - **url**: required
    - **title**: optional; defaults to the URL's hostname without "www."
    - **category**: optional; defaults to "general"
    """
    try:
        bookmark = await bookmark_service.create_bookmark(db, current_user.id, data)
    except BookmarkStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return BookmarkCreatedResponse(bookmark=BookmarkResponse.model_validate(bookmark))


@router.delete("/", response_model=DeleteResponse)
async def delete_bookmark(
    bookmark_id: str | None = Query(default=None, alias="id", description="Bookmark ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> DeleteResponse:
    """
    Delete a bookmark owned by the current user.

    Unknown IDs and IDs owned by other users are a no-op; the request is still
    acknowledged.
    """
    if not bookmark_id:
        raise HTTPException(status_code=400, detail="ID is required")
    try:
        parsed_id = UUID(bookmark_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid bookmark ID")

    try:
        await bookmark_service.delete_bookmark(db, current_user.id, parsed_id)
    except BookmarkStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return DeleteResponse(success=True)


async def change_stream(
    request: Request,
    subscription: Subscription,
    keepalive_seconds: float,
) -> AsyncGenerator[str]:
    """Render a subscription as Server-Sent Events until disconnect or close."""
    with subscription:
        yield ": connected\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                change = await asyncio.wait_for(subscription.get(), timeout=keepalive_seconds)
            except TimeoutError:
                yield ": keepalive\n\n"
                continue
            if change is None:
                break
            yield to_sse(change)


@router.get("/events")
async def stream_changes(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """
    Stream INSERT/DELETE changes to the current user's bookmarks (text/event-stream).

    The stream ends if the client falls too far behind; clients should then
    refetch the list and reconnect.
    """
    # Release the pooled connection before holding the response open
    await db.commit()
    subscription = get_change_feed().subscribe(current_user.id)
    return StreamingResponse(
        change_stream(request, subscription, settings.realtime_keepalive_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
