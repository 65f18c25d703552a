"""
Live bookmark list: the client-side owner of bookmark state.

Consumes three independent sources on one event loop: user actions, HTTP
responses to those actions, and realtime changes. All of them are turned into
reducer events (see bookmark_client.state), so no locking is needed.
"""
import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

import httpx

from bookmark_client.api_client import BookmarkApiClient, BookmarkApiError
from bookmark_client.models import Bookmark, RemoteChange
from bookmark_client.notifications import Notification, Notifier, log_notification
from bookmark_client.state import (
    Add,
    BookmarkEvent,
    BookmarkState,
    Remove,
    Resync,
    event_for_change,
    reduce,
)
from bookmark_client.view import ViewFilter, derive_view

logger = logging.getLogger(__name__)

SAVED_MESSAGE = "Bookmark saved!"
SAVE_FAILED_MESSAGE = "Failed to save bookmark"
DELETED_MESSAGE = "Bookmark deleted"
DELETE_FAILED_MESSAGE = "Failed to delete bookmark"


class LiveBookmarkList:
    """
    Bookmark list kept consistent with the server.

    Adds are applied only after the server confirms them; a failed add is
    reported and leaves state untouched. Deletes are optimistic; a failed
    delete is reported and heals any drift with a full resync.
    """

    def __init__(
        self,
        api: BookmarkApiClient,
        initial: Iterable[Bookmark] = (),
        notify: Notifier | None = None,
    ) -> None:
        self._api = api
        self._notify = notify or log_notification
        self._state = BookmarkState.from_records(initial)
        self._deleting: set[UUID] = set()

    @property
    def state(self) -> BookmarkState:
        """Current state snapshot."""
        return self._state

    @property
    def bookmarks(self) -> tuple[Bookmark, ...]:
        """All bookmarks, newest first."""
        return self._state.bookmarks

    @property
    def count(self) -> int:
        """Number of saved bookmarks, regardless of the active view."""
        return len(self._state)

    def dispatch(self, event: BookmarkEvent) -> BookmarkState:
        """Apply an event to the local state."""
        self._state = reduce(self._state, event)
        return self._state

    def is_deleting(self, bookmark_id: UUID) -> bool:
        """True while a delete request for this bookmark is in flight."""
        return bookmark_id in self._deleting

    def view(
        self,
        query: str = "",
        active_filter: ViewFilter | str = ViewFilter.ALL,
        now: datetime | None = None,
    ) -> list[Bookmark]:
        """Bookmarks matching the search query and filter chip."""
        return derive_view(self._state.bookmarks, query, active_filter, now)

    async def load(self) -> BookmarkState:
        """Replace local state with the server's list."""
        records = await self._api.list_bookmarks()
        return self.dispatch(Resync(tuple(records)))

    async def add(
        self,
        url: str,
        title: str = "",
        category: str = "general",
    ) -> Bookmark | None:
        """Create a bookmark; merge it locally once the server confirms it."""
        url = url.strip()
        if not url:
            return None
        try:
            bookmark = await self._api.create_bookmark(url, title.strip(), category)
        except BookmarkApiError as e:
            self._notify(Notification("error", e.message or SAVE_FAILED_MESSAGE))
            return None
        except httpx.HTTPError as e:
            logger.warning("Create request failed: %s", e)
            self._notify(Notification("error", SAVE_FAILED_MESSAGE))
            return None

        self.dispatch(Add(bookmark))
        self._notify(Notification("success", SAVED_MESSAGE))
        return bookmark

    async def quick_add(self, url: str, title: str | None = None) -> Bookmark | None:
        """One-step add where a missing title falls back to the URL itself."""
        url = url.strip()
        if not url:
            return None
        return await self.add(url, title or url)

    async def remove(self, bookmark_id: UUID) -> bool:
        """
        Delete a bookmark optimistically.

        Returns True if the server acknowledged the delete. On failure the
        local list is replaced by a freshly fetched one.
        """
        self._deleting.add(bookmark_id)
        self.dispatch(Remove(bookmark_id))
        try:
            await self._api.delete_bookmark(bookmark_id)
        except (BookmarkApiError, httpx.HTTPError) as e:
            logger.warning("Delete of bookmark %s failed: %s", bookmark_id, e)
            self._notify(Notification("error", DELETE_FAILED_MESSAGE))
            await self._resync_after_failure()
            return False
        finally:
            self._deleting.discard(bookmark_id)

        self._notify(Notification("success", DELETED_MESSAGE))
        return True

    async def _resync_after_failure(self) -> None:
        try:
            await self.load()
        except (BookmarkApiError, httpx.HTTPError) as e:
            logger.warning("Resync failed, keeping local state: %s", e)

    def apply_change(self, change: RemoteChange) -> BookmarkState:
        """Merge a realtime change into the local state."""
        try:
            event = event_for_change(change)
        except ValueError as e:
            logger.warning("Ignoring realtime change: %s", e)
            return self._state
        return self.dispatch(event)

    async def follow_changes(self, reconnect_delay: float = 1.0) -> None:
        """
        Apply realtime changes until cancelled.

        Each time the stream ends or fails it is reopened after
        `reconnect_delay`. Changes may have been missed while disconnected, so
        once the server confirms the new subscription the list is resynced;
        anything committed after that point arrives on the stream. An auth
        rejection is reported and re-raised. Cancelling the task closes the
        stream, which is the unsubscribe.
        """
        reconnecting = False
        while True:
            on_connected = self._resync_after_failure if reconnecting else None
            try:
                async for change in self._api.stream_changes(on_connected=on_connected):
                    self.apply_change(change)
                logger.info("Change stream closed by server, reconnecting")
            except BookmarkApiError as e:
                if e.category == "auth":
                    self._notify(Notification("error", e.message))
                    raise
                logger.warning("Change stream rejected: %s", e)
            except httpx.HTTPError as e:
                logger.warning("Change stream interrupted: %s", e)
            reconnecting = True
            await asyncio.sleep(reconnect_delay)
