"""Service layer for bookmark queries against the bookmarks table."""
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from schemas.bookmark import BookmarkInsert


async def get_bookmarks(db: AsyncSession, user_id: str) -> list[Bookmark]:
    """Get all bookmarks for a user, newest first."""
    result = await db.execute(
        select(Bookmark)
        .where(Bookmark.user_id == user_id)
        .order_by(Bookmark.created_at.desc()),
    )
    return list(result.scalars().all())


async def create_bookmark(db: AsyncSession, data: BookmarkInsert) -> Bookmark:
    """
    Insert a bookmark row and return it with its generated id and created_at.

    Note: Does not commit. Caller owns the transaction.
    """
    bookmark = Bookmark(url=data.url, title=data.title, user_id=data.user_id)
    db.add(bookmark)
    await db.flush()
    # created_at is a server default, refresh to load it
    await db.refresh(bookmark)
    return bookmark


async def delete_bookmark(db: AsyncSession, user_id: str, bookmark_id: str) -> bool:
    """
    Delete a bookmark scoped to user. Returns True if a row was deleted.

    Note: Does not commit. Caller owns the transaction.
    """
    result = await db.execute(
        delete(Bookmark).where(
            Bookmark.id == bookmark_id,
            Bookmark.user_id == user_id,
        ),
    )
    return result.rowcount > 0
