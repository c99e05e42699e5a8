"""
Top-level controller for one browser's bookmark page.

Owns the application state (session status, signed-in user, bookmark store,
pending alert) and the session-change subscription that keeps it in sync.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from core.auth import IdentityProviderError
from schemas.bookmark import BookmarkRecord
from schemas.session import AuthChangeEvent, Session, SessionUser
from services.bookmark_store import BookmarkStore
from services.bookmark_table import BookmarkTable
from services.exceptions import BookmarkStoreError
from services.session_manager import SessionManager, SessionSubscription

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Where the view is in the sign-in state machine."""

    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass
class ViewState:
    """Session-related state rendered by the page."""

    status: SessionStatus = SessionStatus.LOADING
    user: SessionUser | None = None
    alert: str | None = None


class BookmarkView:
    """Session + bookmark state for one browser, alive between start() and close()."""

    def __init__(
        self,
        session_manager: SessionManager,
        table: BookmarkTable,
        provider: str = "google-oauth2",
    ) -> None:
        self.session_manager = session_manager
        self.table = table
        self.store = BookmarkStore(table)
        self.state = ViewState()
        self.provider = provider
        self._subscription: SessionSubscription | None = None
        self._closed = False

    @property
    def user(self) -> SessionUser | None:
        return self.state.user

    @property
    def bookmarks(self) -> tuple[BookmarkRecord, ...]:
        return self.store.bookmarks

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscribed(self) -> bool:
        """Whether the view still receives session-change notifications."""
        return self._subscription is not None and self._subscription.active

    async def start(self) -> None:
        """Subscribe to session changes and load the initial session and bookmarks."""
        if self._subscription is not None or self._closed:
            return
        self._subscription = self.session_manager.on_session_change(self._on_session_change)
        session = await self.session_manager.get_current_session()
        # An expired session may already have been resolved by a notification
        if self.state.status is SessionStatus.LOADING:
            await self._apply_session(session)

    async def sync_session(self) -> None:
        """
        Re-check the persisted session before handling a request.

        An expired session is refreshed or signed out by the session manager,
        and its notification updates this view.
        """
        if self._closed or self.state.status is SessionStatus.LOADING:
            return
        session = await self.session_manager.get_current_session()
        if session is None and self.state.user is not None:
            await self._apply_session(None)

    async def close(self) -> None:
        """Release the session subscription. Later notifications are ignored."""
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()

    async def _on_session_change(self, event: AuthChangeEvent, session: Session | None) -> None:
        if self._closed:
            return
        logger.debug("Session change %s for view", event.value)
        await self._apply_session(session)

    async def _apply_session(self, session: Session | None) -> None:
        if session is not None:
            if self.state.user is not None and self.state.user.id != session.user.id:
                self.store.clear()
            self.table.authorize(session.user.id)
            self.state.user = session.user
            self.state.status = SessionStatus.AUTHENTICATED
            await self.store.list_bookmarks(session.user.id)
        else:
            self.table.authorize(None)
            self.state.user = None
            self.state.status = SessionStatus.UNAUTHENTICATED
            self.store.clear()

    async def refresh(self) -> bool:
        """Re-read the whole collection, e.g. to restore strict created_at order."""
        if self.state.user is None:
            return False
        return await self.store.list_bookmarks(self.state.user.id)

    async def submit_add(self, title: str, url: str) -> BookmarkRecord | None:
        """
        Handle the add form. Ignored when signed out.

        A failed insert sets the alert and keeps the submitted values in the form.
        """
        if self.state.user is None:
            return None
        self.store.update_form(title=title, url=url)
        try:
            return await self.store.add_bookmark(title, url, self.state.user.id)
        except BookmarkStoreError as e:
            logger.warning("Insert error for user %s: %s", self.state.user.id, e)
            self.state.alert = f"Error: {e}"
            return None

    async def delete(self, bookmark_id: str) -> bool:
        """Delete a bookmark; failures leave it in the list."""
        if self.state.user is None:
            return False
        return await self.store.delete_bookmark(bookmark_id)

    def sign_in(self, redirect_to: str | None = None) -> str:
        """Return the provider URL that starts sign-in."""
        return self.session_manager.sign_in(self.provider, redirect_to)

    async def complete_sign_in(self, code: str, state: str | None) -> bool:
        """Finish the redirect flow. The SIGNED_IN notification updates this view."""
        try:
            await self.session_manager.exchange_code_for_session(code, state)
        except IdentityProviderError as e:
            logger.warning("Sign-in failed: %s", e)
            self.state.alert = f"Sign-in failed: {e}"
            return False
        return True

    async def sign_out(self) -> None:
        await self.session_manager.sign_out()

    def pop_alert(self) -> str | None:
        """Return the pending alert once."""
        alert, self.state.alert = self.state.alert, None
        return alert
