"""User model for storing authenticated users."""
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from models.bookmark import Bookmark


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """User model - maps a token subject to a local owner id for bookmarks."""

    __tablename__ = "users"

    auth_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        comment="Token 'sub' claim - unique identifier from the identity provider",
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    bookmarks: Mapped[list["Bookmark"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )
