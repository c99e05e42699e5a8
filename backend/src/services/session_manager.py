"""
Session tracking for one browser.

The SessionManager reads and writes the persisted session in a storage mapping,
drives the provider redirect flow, and notifies subscribers whenever the
session changes (sign-in, sign-out, token refresh). Subscribers hold a
SessionSubscription and must release it when they are torn down.
"""
import logging
import secrets
from collections.abc import Awaitable, Callable, MutableMapping
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from pydantic import ValidationError

from core.auth import IdentityProviderError, TokenSet
from schemas.session import AuthChangeEvent, Session, SessionUser

logger = logging.getLogger(__name__)

SESSION_KEY = "auth.session"
STATE_KEY = "auth.oauth_state"

SessionChangeHandler = Callable[[AuthChangeEvent, Session | None], Awaitable[None]]


class IdentityProvider(Protocol):
    """The identity provider operations the session manager depends on."""

    def authorization_url(self, provider: str, redirect_to: str, state: str) -> str: ...

    async def exchange_code(self, code: str, redirect_to: str) -> TokenSet: ...

    async def refresh(self, refresh_token: str) -> TokenSet: ...

    async def revoke(self, refresh_token: str) -> None: ...

    def verify_id_token(self, id_token: str) -> dict[str, Any]: ...


class SessionSubscription:
    """Handle for a registered session-change handler."""

    def __init__(self, manager: "SessionManager", handler: SessionChangeHandler) -> None:
        self._manager = manager
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop delivering notifications to the handler. Safe to call twice."""
        if self._active:
            self._manager._remove_handler(self._handler)
            self._active = False

    def __enter__(self) -> "SessionSubscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class SessionManager:
    """Tracks the authenticated session persisted in ``storage``."""

    def __init__(
        self,
        storage: MutableMapping[str, Any],
        provider: IdentityProvider,
        redirect_to: str,
    ) -> None:
        self._storage = storage
        self._provider = provider
        self._redirect_to = redirect_to
        self._handlers: list[SessionChangeHandler] = []

    def on_session_change(self, handler: SessionChangeHandler) -> SessionSubscription:
        """Register a handler called after every sign-in, sign-out, or token refresh."""
        self._handlers.append(handler)
        return SessionSubscription(self, handler)

    def _remove_handler(self, handler: SessionChangeHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def _notify(self, event: AuthChangeEvent, session: Session | None) -> None:
        # Copy so handlers may unsubscribe while being notified
        for handler in list(self._handlers):
            if handler not in self._handlers:
                continue
            try:
                await handler(event, session)
            except Exception:
                logger.exception("Session change handler failed for %s", event.value)

    def _load(self) -> Session | None:
        raw = self._storage.get(SESSION_KEY)
        if raw is None:
            return None
        try:
            return Session.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding malformed persisted session: %s", e)
            self._storage.pop(SESSION_KEY, None)
            return None

    def _save(self, session: Session) -> None:
        self._storage[SESSION_KEY] = session.model_dump(mode="json")

    def _session_from_tokens(self, tokens: TokenSet, previous: Session | None = None) -> Session:
        if tokens.id_token:
            claims = self._provider.verify_id_token(tokens.id_token)
            sub = claims.get("sub")
            if not sub:
                raise IdentityProviderError("ID token missing sub claim")
            user = SessionUser(id=sub, email=claims.get("email"))
        elif previous is not None:
            user = previous.user
        else:
            raise IdentityProviderError("Token response missing id_token")
        return Session(
            user=user,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=datetime.now(UTC) + timedelta(seconds=tokens.expires_in),
        )

    async def get_current_session(self) -> Session | None:
        """
        Return the persisted session, or None.

        Never raises. An expired session is refreshed when possible; otherwise
        it is dropped and subscribers see SIGNED_OUT.
        """
        session = self._load()
        if session is None or not session.is_expired():
            return session
        return await self.refresh_session()

    def sign_in(self, provider: str, redirect_to: str | None = None) -> str:
        """
        Start the provider redirect flow and return the URL to send the browser to.

        The outcome arrives later through exchange_code_for_session and a
        SIGNED_IN notification.
        """
        state = secrets.token_urlsafe(32)
        self._storage[STATE_KEY] = state
        return self._provider.authorization_url(
            provider,
            redirect_to or self._redirect_to,
            state,
        )

    async def exchange_code_for_session(self, code: str, state: str | None) -> Session:
        """
        Finish the redirect flow: trade the code for a session and persist it.

        Raises:
            IdentityProviderError: If the state does not match the pending
                sign-in, or the provider rejects the code or ID token.
        """
        expected_state = self._storage.pop(STATE_KEY, None)
        if expected_state is None or not state or not secrets.compare_digest(expected_state, state):
            raise IdentityProviderError("Sign-in state mismatch")

        tokens = await self._provider.exchange_code(code, self._redirect_to)
        session = self._session_from_tokens(tokens)
        self._save(session)
        logger.info("User %s signed in", session.user.id)
        await self._notify(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def refresh_session(self) -> Session | None:
        """
        Refresh the persisted session's access token.

        Returns the new session, or None (after signing out locally) when there
        is no refresh token or the provider refuses it.
        """
        session = self._load()
        if session is None:
            return None
        if session.refresh_token is None:
            await self._expire(session)
            return None
        try:
            tokens = await self._provider.refresh(session.refresh_token)
            refreshed = self._session_from_tokens(tokens, previous=session)
        except IdentityProviderError as e:
            logger.warning("Session refresh failed for user %s: %s", session.user.id, e)
            await self._expire(session)
            return None
        self._save(refreshed)
        await self._notify(AuthChangeEvent.TOKEN_REFRESHED, refreshed)
        return refreshed

    async def _expire(self, session: Session) -> None:
        logger.info("Session for user %s expired", session.user.id)
        self._storage.pop(SESSION_KEY, None)
        await self._notify(AuthChangeEvent.SIGNED_OUT, None)

    async def sign_out(self) -> None:
        """End the session. Provider-side revocation errors are logged and ignored."""
        session = self._load()
        self._storage.pop(SESSION_KEY, None)
        if session is not None and session.refresh_token is not None:
            try:
                await self._provider.revoke(session.refresh_token)
            except IdentityProviderError as e:
                logger.warning("Sign-out revocation failed: %s", e)
        await self._notify(AuthChangeEvent.SIGNED_OUT, None)
