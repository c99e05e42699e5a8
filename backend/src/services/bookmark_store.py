"""
Local bookmark state kept in sync with the remote bookmarks table.

Mutations are applied optimistically from each operation's own response: an
insert prepends the returned row and a delete filters the id out locally. The
full collection is only re-read by list_bookmarks, so the local order can drift
from strict created_at order until the next full fetch.
"""
import logging
from typing import Protocol

from schemas.bookmark import BookmarkForm, BookmarkInsert, BookmarkRecord
from services.exceptions import BookmarkStoreError

logger = logging.getLogger(__name__)


class BookmarkRemote(Protocol):
    """The remote operations the store depends on."""

    async def select_all(self, owner_id: str) -> list[BookmarkRecord]: ...

    async def insert(self, row: BookmarkInsert) -> BookmarkRecord: ...

    async def delete(self, bookmark_id: str) -> None: ...


class BookmarkStore:
    """Display state for one user's bookmark collection plus the add form."""

    def __init__(self, remote: BookmarkRemote) -> None:
        self._remote = remote
        self._bookmarks: list[BookmarkRecord] = []
        self._form = BookmarkForm()

    @property
    def bookmarks(self) -> tuple[BookmarkRecord, ...]:
        """Snapshot of the local list in display order."""
        return tuple(self._bookmarks)

    @property
    def form(self) -> BookmarkForm:
        """Current add-form input."""
        return self._form

    def update_form(self, title: str | None = None, url: str | None = None) -> None:
        """Record form input as the user types (or submits)."""
        self._form = self._form.model_copy(
            update={
                key: value
                for key, value in (("title", title), ("url", url))
                if value is not None
            },
        )

    def clear(self) -> None:
        """Drop all local state, e.g. after sign-out."""
        self._bookmarks = []
        self._form = BookmarkForm()

    async def list_bookmarks(self, owner_id: str) -> bool:
        """
        Replace the local list with the owner's bookmarks, newest first.

        On failure the error is logged and the local list is left as it was.
        Returns whether the fetch succeeded.
        """
        try:
            bookmarks = await self._remote.select_all(owner_id)
        except BookmarkStoreError as e:
            logger.warning("Fetch error for user %s: %s", owner_id, e)
            return False
        self._bookmarks = list(bookmarks)
        return True

    async def add_bookmark(self, title: str, url: str, owner_id: str) -> BookmarkRecord:
        """
        Insert a bookmark and prepend the returned record locally.

        On success the form is cleared. On failure BookmarkStoreError is raised
        and neither the list nor the form is touched.
        """
        record = await self._remote.insert(
            BookmarkInsert(url=url, title=title, user_id=owner_id),
        )
        self._bookmarks = [record, *self._bookmarks]
        self._form = BookmarkForm()
        return record

    async def delete_bookmark(self, bookmark_id: str) -> bool:
        """
        Delete a bookmark by id and drop it from the local list.

        Failures are logged and leave the local list unchanged. Deleting an id
        that is not in the local list is not an error. Returns whether the
        remote delete succeeded.
        """
        try:
            await self._remote.delete(bookmark_id)
        except BookmarkStoreError as e:
            logger.warning("Delete error for bookmark %s: %s", bookmark_id, e)
            return False
        self._bookmarks = [bm for bm in self._bookmarks if bm.id != bookmark_id]
        return True
