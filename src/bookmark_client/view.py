"""Derived views over the bookmark list: search, filter chips, display helpers."""
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from urllib.parse import quote, urlsplit

from bookmark_client.models import Bookmark

RECENT_WINDOW = timedelta(hours=24)


class ViewFilter(StrEnum):
    """Filter chips, in display order."""

    ALL = "All"
    GENERAL = "General"
    RECENTLY_ADDED = "Recently Added"
    WORK = "Work"
    REFERENCE = "Reference"


# Filters that restrict to a single category label
CATEGORY_FILTERS = {
    ViewFilter.GENERAL: "general",
    ViewFilter.WORK: "work",
    ViewFilter.REFERENCE: "reference",
}


def _coerce_filter(active_filter: ViewFilter | str) -> ViewFilter:
    try:
        return ViewFilter(active_filter)
    except ValueError:
        return ViewFilter.ALL


def matches_query(bookmark: Bookmark, query: str) -> bool:
    """Case-insensitive substring match against title or URL."""
    needle = query.lower()
    return needle in bookmark.title.lower() or needle in bookmark.url.lower()


def derive_view(
    bookmarks: Iterable[Bookmark],
    query: str = "",
    active_filter: ViewFilter | str = ViewFilter.ALL,
    now: datetime | None = None,
) -> list[Bookmark]:
    """
    Bookmarks to render, in list order.

    The text query and the filter are combined with AND. "Recently Added" keeps
    bookmarks younger than 24 hours relative to `now` (wall-clock time when
    omitted). Unknown filter labels apply no restriction.
    """
    selected = _coerce_filter(active_filter)
    category = CATEGORY_FILTERS.get(selected)
    if selected is ViewFilter.RECENTLY_ADDED:
        cutoff = (now or datetime.now(UTC)) - RECENT_WINDOW

    visible = []
    for bookmark in bookmarks:
        if not matches_query(bookmark, query):
            continue
        if category is not None and bookmark.category != category:
            continue
        if selected is ViewFilter.RECENTLY_ADDED and bookmark.created_at <= cutoff:
            continue
        visible.append(bookmark)
    return visible


def _hostname(url: str) -> str | None:
    try:
        return urlsplit(url).hostname or None
    except ValueError:
        return None


def display_domain(url: str) -> str:
    """Hostname without a leading "www.", or the raw string if it does not parse."""
    hostname = _hostname(url)
    if hostname is None:
        return url
    return hostname.removeprefix("www.")


def favicon_url(url: str, size: int = 64) -> str | None:
    """Favicon image URL for the bookmark's site, or None if the URL does not parse."""
    hostname = _hostname(url)
    if hostname is None:
        return None
    return f"https://www.google.com/s2/favicons?domain={quote(hostname)}&sz={size}"


def time_ago(created_at: datetime, now: datetime | None = None) -> str:  # noqa: PLR0911
    """Coarse relative age label."""
    now = now or datetime.now(UTC)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    minutes = int((now - created_at).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    return "Last week"
