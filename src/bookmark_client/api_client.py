"""HTTP client for the bookmarks API and its realtime change stream."""

import json
import logging
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from uuid import UUID

import httpx

from bookmark_client.models import Bookmark, RemoteChange
from shared.api_errors import ErrorCategory, parse_http_error

logger = logging.getLogger(__name__)

# First frame of the change stream, sent once the server-side subscription is open
CONNECTED_COMMENT = ": connected"


def get_api_base_url() -> str:
    """Get the API base URL from environment."""
    return os.getenv("SMARTMARK_API_URL", "http://localhost:8000")


def get_default_timeout() -> float:
    """Get the default request timeout."""
    return float(os.getenv("SMARTMARK_API_TIMEOUT", "30.0"))


class BookmarkApiError(Exception):
    """A failed API call, with a semantic category and a user-facing message."""

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.category = category
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def from_http_error(cls, e: httpx.HTTPStatusError) -> "BookmarkApiError":
        """Build from an httpx status error."""
        parsed = parse_http_error(e)
        return cls(parsed.category, parsed.message, parsed.status_code)


def create_http_client(
    base_url: str | None = None,
    timeout: float | None = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient pointed at the API."""
    return httpx.AsyncClient(
        base_url=base_url or get_api_base_url(),
        timeout=timeout if timeout is not None else get_default_timeout(),
    )


class BookmarkApiClient:
    """
    Thin wrapper over the bookmark endpoints.

    Every method raises BookmarkApiError on a non-2xx response; transport
    failures surface as httpx.HTTPError.
    """

    def __init__(self, client: httpx.AsyncClient, token: str | None = None) -> None:
        self._client = client
        self._token = token

    def _headers(self) -> dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: object,
    ) -> dict:
        response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BookmarkApiError.from_http_error(e) from e
        return response.json()

    async def list_bookmarks(self) -> list[Bookmark]:
        """Fetch the authoritative list, newest first."""
        data = await self._request("GET", "/bookmarks/")
        return [Bookmark.model_validate(item) for item in data["bookmarks"]]

    async def create_bookmark(
        self,
        url: str,
        title: str | None = None,
        category: str | None = None,
    ) -> Bookmark:
        """Create a bookmark and return the server-confirmed record."""
        payload = {"url": url, "title": title, "category": category}
        data = await self._request("POST", "/bookmarks/", json=payload)
        return Bookmark.model_validate(data["bookmark"])

    async def delete_bookmark(self, bookmark_id: UUID | str) -> None:
        """Delete a bookmark by id."""
        await self._request("DELETE", "/bookmarks/", params={"id": str(bookmark_id)})

    async def stream_changes(
        self,
        on_connected: Callable[[], Awaitable[None]] | None = None,
    ) -> AsyncIterator[RemoteChange]:
        """
        Yield realtime changes until the server closes the stream.

        `on_connected` is awaited when the server reports that the subscription
        is open; changes committed from then on are delivered by this stream.
        Closing the generator (or cancelling the consuming task) closes the
        HTTP response, which is the unsubscribe.
        """
        async with self._client.stream(
            "GET",
            "/bookmarks/events",
            headers={**self._headers(), "Accept": "text/event-stream"},
            timeout=httpx.Timeout(self._client.timeout.connect, read=None),
        ) as response:
            if response.is_error:
                await response.aread()
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as e:
                    raise BookmarkApiError.from_http_error(e) from e

            data_lines: list[str] = []
            async for line in response.aiter_lines():
                if line:
                    if line.startswith("data:"):
                        data_lines.append(line[5:].lstrip())
                    elif line == CONNECTED_COMMENT and on_connected is not None:
                        await on_connected()
                    # "event:" duplicates the payload's own event field; ":" lines are comments
                    continue
                if not data_lines:
                    continue
                payload = "\n".join(data_lines)
                data_lines = []
                change = _parse_change(payload)
                if change is not None:
                    yield change


def _parse_change(payload: str) -> RemoteChange | None:
    try:
        return RemoteChange.model_validate(json.loads(payload))
    except ValueError as e:  # covers JSON decode and validation errors
        logger.warning("Ignoring malformed change event: %s", e)
        return None
