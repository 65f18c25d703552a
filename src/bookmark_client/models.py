"""Client-side bookmark records and realtime change payloads."""
from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


class Bookmark(BaseModel):
    """An immutable bookmark record as returned by the API."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    url: str
    title: str
    category: str = "general"
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so age comparisons never mix naive and aware."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class ChangeEvent(StrEnum):
    """Row-level change types delivered by the realtime stream."""

    INSERT = "INSERT"
    DELETE = "DELETE"


class BookmarkKey(BaseModel):
    """Identifier of a deleted bookmark."""

    id: UUID


class RemoteChange(BaseModel):
    """A change pushed by the server: INSERT carries `new`, DELETE carries `old`."""

    event: ChangeEvent
    user_id: UUID | None = None
    new: Bookmark | None = None
    old: BookmarkKey | None = None
