"""Pydantic schemas for bookmark endpoints and change events."""
from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from core.config import get_settings


def validate_title_length(title: str | None) -> str | None:
    """Validate that title doesn't exceed maximum length."""
    settings = get_settings()
    if title is not None and len(title) > settings.max_title_length:
        raise ValueError(
            f"Title exceeds maximum length of {settings.max_title_length:,} characters "
            f"(got {len(title):,} characters).",
        )
    return title


def validate_category_length(category: str | None) -> str | None:
    """Validate that category doesn't exceed maximum length."""
    settings = get_settings()
    if category is not None and len(category) > settings.max_category_length:
        raise ValueError(
            f"Category exceeds maximum length of {settings.max_category_length:,} characters "
            f"(got {len(category):,} characters).",
        )
    return category


class BookmarkCreate(BaseModel):
    """
    Schema for creating a new bookmark.

    `url` is kept as the user supplied it (trimmed) rather than parsed as an
    HttpUrl: strings that do not parse as URLs are still accepted and fall back
    to using the raw string as the title.
    """

    url: str
    title: str | None = None
    category: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Trim the URL and reject blank values."""
        v = v.strip()
        if not v:
            raise ValueError("URL is required")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        """Trim the title; blank titles are treated as missing."""
        if v is None:
            return None
        return validate_title_length(v.strip()) or None

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str | None) -> str | None:
        """Trim the category; blank categories are treated as missing."""
        if v is None:
            return None
        return validate_category_length(v.strip()) or None


class BookmarkResponse(BaseModel):
    """Schema for a single bookmark record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    url: str
    title: str
    category: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """SQLite drops tzinfo on round-trip; stored values are always UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class BookmarkListResponse(BaseModel):
    """Response for listing the current user's bookmarks, newest first."""

    bookmarks: list[BookmarkResponse]


class BookmarkCreatedResponse(BaseModel):
    """Response for a created bookmark."""

    bookmark: BookmarkResponse


class DeleteResponse(BaseModel):
    """Acknowledgement for a delete request."""

    success: bool = True


class ChangeEvent(StrEnum):
    """Row-level change types carried by the realtime change feed."""

    INSERT = "INSERT"
    DELETE = "DELETE"


class BookmarkKey(BaseModel):
    """Identifier of a deleted bookmark."""

    id: UUID


class BookmarkChange(BaseModel):
    """
    A single change on the bookmarks table, scoped to the owning user.

    INSERT changes carry the full record in `new`; DELETE changes carry only the
    identifier in `old`.
    """

    event: ChangeEvent
    user_id: UUID
    new: BookmarkResponse | None = None
    old: BookmarkKey | None = None
