"""Pydantic schemas for bookmarks."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class BookmarkCreate(BaseModel):
    """
    Schema for creating a new bookmark.

    Both fields only need to be non-empty. The URL is deliberately not parsed:
    a value such as 'not a url' is still saved, it just gets no favicon.
    """

    title: str = Field(min_length=1)
    url: str = Field(min_length=1)


class BookmarkInsert(BaseModel):
    """Row sent to the bookmarks table on insert."""

    url: str
    title: str
    user_id: str


class BookmarkRecord(BaseModel):
    """
    A bookmark row as returned by the remote table.

    Validation is strict so a malformed row is rejected at the table boundary
    instead of leaking into display state.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: StrictStr = Field(min_length=1)
    created_at: datetime
    url: StrictStr
    title: StrictStr
    user_id: StrictStr = Field(min_length=1)


class BookmarkForm(BaseModel):
    """Pending input values of the add-bookmark form."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    url: str = ""


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses on the JSON API."""

    id: str
    created_at: datetime
    url: str
    title: str
    user_id: str
    favicon_url: str | None = None
