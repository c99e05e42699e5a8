"""SQLAlchemy models."""
from models.base import Base, CreatedAtMixin
from models.bookmark import Bookmark

__all__ = [
    "Base",
    "Bookmark",
    "CreatedAtMixin",
]
