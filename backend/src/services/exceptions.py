"""Shared exceptions for service layer operations."""


class BookmarkStoreError(Exception):
    """
    Raised when a remote bookmark operation fails.

    Covers transport and database errors alike; callers do not distinguish
    transient from permanent failures.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class BookmarkAccessError(BookmarkStoreError):
    """Raised when an operation targets rows the authorized user does not own."""

    def __init__(self, message: str = "Not authorized for this bookmark collection") -> None:
        super().__init__(message)


class MalformedBookmarkError(BookmarkStoreError):
    """Raised when a row returned by the bookmarks table fails validation."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Malformed bookmark record: {detail}")
