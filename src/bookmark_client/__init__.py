"""Client for the SmartMark bookmarks API with live, reconciled local state."""
from bookmark_client.api_client import BookmarkApiClient, BookmarkApiError, create_http_client
from bookmark_client.live_list import LiveBookmarkList
from bookmark_client.models import Bookmark, RemoteChange
from bookmark_client.notifications import Notification
from bookmark_client.state import (
    Add,
    BookmarkState,
    Remove,
    RemoteDelete,
    RemoteInsert,
    Resync,
    reduce,
)
from bookmark_client.view import ViewFilter, derive_view

__all__ = [
    "Add",
    "Bookmark",
    "BookmarkApiClient",
    "BookmarkApiError",
    "BookmarkState",
    "LiveBookmarkList",
    "Notification",
    "RemoteChange",
    "RemoteDelete",
    "RemoteInsert",
    "Remove",
    "Resync",
    "ViewFilter",
    "create_http_client",
    "derive_view",
    "reduce",
]
