"""Pydantic schemas for the authenticated session."""
from datetime import UTC, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict

# Treat a session as expired slightly early so a token never expires mid-request
EXPIRY_MARGIN = timedelta(seconds=30)


class AuthChangeEvent(str, Enum):
    """Kinds of session-change notification."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class SessionUser(BaseModel):
    """The authenticated identity, taken from ID token claims."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None

    @property
    def display_name(self) -> str:
        """Local part of the email, falling back to the user id."""
        if self.email:
            return self.email.split("@")[0]
        return self.id


class Session(BaseModel):
    """An authenticated session issued by the identity provider."""

    model_config = ConfigDict(frozen=True)

    user: SessionUser
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the access token has expired (or is about to)."""
        now = now or datetime.now(UTC)
        return now + EXPIRY_MARGIN >= self.expires_at


class SessionResponse(BaseModel):
    """Session state as exposed on the JSON API."""

    status: str
    user: SessionUser | None = None
