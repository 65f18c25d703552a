"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from models.bookmark import DEFAULT_CATEGORY, Bookmark
from models.user import User

__all__ = ["DEFAULT_CATEGORY", "Base", "Bookmark", "TimestampMixin", "UUIDPrimaryKeyMixin", "User"]
