"""Tests for search, filter chips and display helpers."""
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from bookmark_client.models import Bookmark
from bookmark_client.view import (
    ViewFilter,
    derive_view,
    display_domain,
    favicon_url,
    matches_query,
    time_ago,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def make_bookmark(
    title: str = "Example",
    url: str = "https://example.com",
    category: str = "general",
    age: timedelta = timedelta(0),
) -> Bookmark:
    return Bookmark(
        id=uuid4(),
        user_id=uuid4(),
        url=url,
        title=title,
        category=category,
        created_at=NOW - age,
    )


@pytest.fixture
def bookmarks() -> list[Bookmark]:
    return [
        make_bookmark("FastAPI docs", "https://fastapi.tiangolo.com", "work", timedelta(hours=1)),
        make_bookmark("Recipes", "https://cooking.example.com", "general", timedelta(days=2)),
        make_bookmark("RFC 9110", "https://www.rfc-editor.org/rfc/rfc9110", "reference",
                      timedelta(hours=23)),
        make_bookmark("Standup notes", "https://notes.example.com/work", "work", timedelta(days=8)),
    ]


class TestDeriveView:
    def test__all_with_empty_query__is_identity(self, bookmarks: list[Bookmark]) -> None:
        assert derive_view(bookmarks, "", ViewFilter.ALL, NOW) == bookmarks

    def test__query_matches_title_case_insensitively(self, bookmarks: list[Bookmark]) -> None:
        assert [b.title for b in derive_view(bookmarks, "fastapi", now=NOW)] == ["FastAPI docs"]

    def test__query_matches_url(self, bookmarks: list[Bookmark]) -> None:
        titles = [b.title for b in derive_view(bookmarks, "EXAMPLE.COM", now=NOW)]
        assert titles == ["Recipes", "Standup notes"]

    @pytest.mark.parametrize(
        ("active_filter", "expected"),
        [
            (ViewFilter.GENERAL, ["Recipes"]),
            (ViewFilter.WORK, ["FastAPI docs", "Standup notes"]),
            (ViewFilter.REFERENCE, ["RFC 9110"]),
            ("Work", ["FastAPI docs", "Standup notes"]),
        ],
    )
    def test__category_filters(
        self, bookmarks: list[Bookmark], active_filter: ViewFilter | str, expected: list[str],
    ) -> None:
        assert [b.title for b in derive_view(bookmarks, "", active_filter, NOW)] == expected

    def test__recently_added__last_24_hours(self, bookmarks: list[Bookmark]) -> None:
        titles = [b.title for b in derive_view(bookmarks, "", ViewFilter.RECENTLY_ADDED, NOW)]
        assert titles == ["FastAPI docs", "RFC 9110"]

    def test__recently_added__exactly_24_hours_excluded(self) -> None:
        edge = make_bookmark(age=timedelta(hours=24))
        assert derive_view([edge], "", ViewFilter.RECENTLY_ADDED, NOW) == []

    def test__query_and_filter_combine(self, bookmarks: list[Bookmark]) -> None:
        titles = [b.title for b in derive_view(bookmarks, "notes", ViewFilter.WORK, NOW)]
        assert titles == ["Standup notes"]

        assert derive_view(bookmarks, "recipes", ViewFilter.WORK, NOW) == []

    def test__unknown_filter_applies_no_restriction(self, bookmarks: list[Bookmark]) -> None:
        assert derive_view(bookmarks, "", "Personal", NOW) == bookmarks

    def test__view_is_subset_preserving_order(self, bookmarks: list[Bookmark]) -> None:
        view = derive_view(bookmarks, "o", ViewFilter.ALL, NOW)
        positions = [bookmarks.index(b) for b in view]
        assert positions == sorted(positions)


def test__matches_query__empty_matches_everything() -> None:
    assert matches_query(make_bookmark(), "")


class TestDisplayHelpers:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://www.github.com/user/repo", "github.com"),
            ("https://docs.python.org/3/", "docs.python.org"),
            ("not a url", "not a url"),
        ],
    )
    def test__display_domain(self, url: str, expected: str) -> None:
        assert display_domain(url) == expected

    def test__favicon_url(self) -> None:
        assert favicon_url("https://www.github.com/user") == (
            "https://www.google.com/s2/favicons?domain=www.github.com&sz=64"
        )

    def test__favicon_url__unparseable(self) -> None:
        assert favicon_url("not a url") is None

    @pytest.mark.parametrize(
        ("age", "expected"),
        [
            (timedelta(seconds=30), "Just now"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3), "3h ago"),
            (timedelta(hours=30), "Yesterday"),
            (timedelta(days=3), "3 days ago"),
            (timedelta(days=10), "Last week"),
        ],
    )
    def test__time_ago(self, age: timedelta, expected: str) -> None:
        assert time_ago(NOW - age, now=NOW) == expected

    def test__time_ago__naive_timestamp_treated_as_utc(self) -> None:
        naive = (NOW - timedelta(minutes=2)).replace(tzinfo=None)
        assert time_ago(naive, now=NOW) == "2m ago"
