"""In-memory registry of per-browser views and their persisted session storage."""
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.bookmark_table import BookmarkTable
from services.bookmark_view import BookmarkView
from services.session_manager import SESSION_KEY, IdentityProvider, SessionManager

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = 1800.0
DEFAULT_MAX_VIEWS = 10_000


class ViewRegistry:
    """
    Maps a browser key (from the signed session cookie) to its BookmarkView.

    Session storage is kept per key independently of the view, so a view that
    is torn down and recreated (a full reload) still finds the signed-in session.

    Views unused for ``idle_timeout`` seconds are evicted, and at most
    ``max_views`` are held (least recently used go first). Eviction drops the
    browser's storage too unless it holds a signed-in session.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        session_factory: async_sessionmaker[AsyncSession],
        redirect_to: str,
        connection: str = "google-oauth2",
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        max_views: int = DEFAULT_MAX_VIEWS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_views < 1:
            raise ValueError("max_views must be at least 1")
        self._provider = provider
        self._session_factory = session_factory
        self._redirect_to = redirect_to
        self._connection = connection
        self._idle_timeout = idle_timeout
        self._max_views = max_views
        self._clock = clock
        self._storages: dict[str, dict[str, Any]] = {}
        # Least recently used first
        self._views: OrderedDict[str, BookmarkView] = OrderedDict()
        self._last_seen: dict[str, float] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._views

    def __len__(self) -> int:
        return len(self._views)

    @property
    def storage_count(self) -> int:
        """Number of browser keys with session storage held."""
        return len(self._storages)

    def storage(self, key: str) -> dict[str, Any]:
        """Persisted session storage for a browser key."""
        return self._storages.setdefault(key, {})

    def _create_view(self, key: str) -> BookmarkView:
        session_manager = SessionManager(self.storage(key), self._provider, self._redirect_to)
        return BookmarkView(
            session_manager,
            BookmarkTable(self._session_factory),
            provider=self._connection,
        )

    async def get_view(self, key: str) -> BookmarkView:
        """Return the started view for a browser key, creating it on first use."""
        await self.sweep()
        view = self._views.get(key)
        if view is None:
            view = self._create_view(key)
            self._views[key] = view
            await view.start()
        self._views.move_to_end(key)
        self._last_seen[key] = self._clock()
        while len(self._views) > self._max_views:
            await self.evict(next(iter(self._views)))
        return view

    async def sweep(self) -> int:
        """Evict every view idle for longer than the timeout. Returns how many."""
        cutoff = self._clock() - self._idle_timeout
        idle = []
        for key in self._views:
            if self._last_seen.get(key, cutoff) > cutoff:
                break
            idle.append(key)
        for key in idle:
            await self.evict(key)
        if idle:
            logger.debug("Evicted %d idle bookmark views", len(idle))
        return len(idle)

    async def evict(self, key: str) -> None:
        """Tear down a browser's view and forget its storage unless signed in."""
        await self.discard(key)
        storage = self._storages.get(key)
        if storage is not None and SESSION_KEY not in storage:
            del self._storages[key]

    async def discard(self, key: str) -> None:
        """Tear down a browser's view, keeping its persisted session."""
        self._last_seen.pop(key, None)
        view = self._views.pop(key, None)
        if view is not None:
            await view.close()

    async def reload(self, key: str) -> BookmarkView:
        """Tear down and recreate a browser's view, re-running the initial load."""
        await self.discard(key)
        return await self.get_view(key)

    async def close(self) -> None:
        """Tear down every view (application shutdown)."""
        keys = list(self._views)
        for key in keys:
            await self.discard(key)
        logger.info("Closed %d bookmark views", len(keys))
