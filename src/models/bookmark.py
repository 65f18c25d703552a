"""Bookmark model for storing user bookmarks."""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, UUIDPrimaryKeyMixin, utc_now

if TYPE_CHECKING:
    from models.user import User

DEFAULT_CATEGORY = "general"


class Bookmark(Base, UUIDPrimaryKeyMixin):
    """
    Bookmark model - a saved URL with a display title and a category label.

    Bookmarks are immutable once created: there is no updated_at column and no
    update path. created_at drives newest-first ordering.
    """

    __tablename__ = "bookmarks"
    __table_args__ = (
        Index("ix_bookmarks_user_id_created_at", "user_id", "created_at"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=DEFAULT_CATEGORY,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    user: Mapped["User"] = relationship(back_populates="bookmarks")
