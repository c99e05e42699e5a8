"""Bookmark model for storing user bookmarks."""
from uuid import uuid4

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, CreatedAtMixin


def _new_bookmark_id() -> str:
    return str(uuid4())


class Bookmark(Base, CreatedAtMixin):
    """Bookmark model - a (title, URL) pair owned by one user."""

    __tablename__ = "bookmarks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_bookmark_id)
    user_id: Mapped[str] = mapped_column(
        String(255),
        index=True,
        comment="Auth0 'sub' claim of the owner",
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
