"""
Remote client for the bookmarks table.

Exposes exactly three operations (select all, insert one, delete one) and
applies the row ownership policy: the client is authorized as one user at a
time and refuses to read, write, or delete rows belonging to anyone else.
Every row crossing the boundary is validated into a BookmarkRecord.
"""
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.bookmark import Bookmark
from schemas.bookmark import BookmarkInsert, BookmarkRecord
from services import bookmark_service
from services.exceptions import (
    BookmarkAccessError,
    BookmarkStoreError,
    MalformedBookmarkError,
)

logger = logging.getLogger(__name__)


def to_record(row: Bookmark) -> BookmarkRecord:
    """Validate a table row into a BookmarkRecord."""
    try:
        return BookmarkRecord.model_validate(row)
    except ValidationError as e:
        raise MalformedBookmarkError(str(e)) from e


def to_records(rows: Iterable[Bookmark]) -> list[BookmarkRecord]:
    """Validate every row; one malformed row rejects the whole result."""
    return [to_record(row) for row in rows]


class BookmarkTable:
    """Bookmarks table client authorized as a single user."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._owner_id: str | None = None

    @property
    def owner_id(self) -> str | None:
        """The user this client is currently authorized as."""
        return self._owner_id

    def authorize(self, owner_id: str | None) -> None:
        """Authorize as owner_id, or drop authorization with None."""
        self._owner_id = owner_id

    def _require_owner(self, owner_id: str | None = None) -> str:
        if self._owner_id is None:
            raise BookmarkAccessError("Not signed in")
        if owner_id is not None and owner_id != self._owner_id:
            raise BookmarkAccessError()
        return self._owner_id

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise BookmarkStoreError(f"Failed to {operation}: {e}") from e
            except Exception:
                await session.rollback()
                raise

    async def select_all(self, owner_id: str) -> list[BookmarkRecord]:
        """SELECT * FROM bookmarks for the owner ORDER BY created_at DESC."""
        owner = self._require_owner(owner_id)
        async with self._transaction("fetch bookmarks") as session:
            rows = await bookmark_service.get_bookmarks(session, owner)
            return to_records(rows)

    async def insert(self, row: BookmarkInsert) -> BookmarkRecord:
        """INSERT one row and return it with its generated id and created_at."""
        self._require_owner(row.user_id)
        async with self._transaction("save bookmark") as session:
            bookmark = await bookmark_service.create_bookmark(session, row)
            return to_record(bookmark)

    async def delete(self, bookmark_id: str) -> None:
        """DELETE the row matching bookmark_id, if the authorized user owns it."""
        owner = self._require_owner()
        async with self._transaction("delete bookmark") as session:
            deleted = await bookmark_service.delete_bookmark(session, owner, bookmark_id)
        if not deleted:
            # Zero matched rows is not an error
            logger.debug("Delete of bookmark %s matched no rows", bookmark_id)
