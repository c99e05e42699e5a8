"""JSON mirror of the page's bookmark operations."""
from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_app_settings, get_current_user, get_view
from core.config import Settings
from schemas.bookmark import BookmarkCreate, BookmarkRecord, BookmarkResponse
from schemas.session import SessionResponse, SessionUser
from services.bookmark_view import BookmarkView
from services.favicon import favicon_url

router = APIRouter(prefix="/api", tags=["bookmarks"])


def to_response(record: BookmarkRecord, settings: Settings) -> BookmarkResponse:
    """Attach the derived favicon URL to a record."""
    return BookmarkResponse(
        **record.model_dump(),
        favicon_url=favicon_url(
            record.url,
            service_url=settings.favicon_service_url,
            size=settings.favicon_size,
        ),
    )


@router.get("/session", response_model=SessionResponse)
async def get_session(view: BookmarkView = Depends(get_view)) -> SessionResponse:
    """Session status of the requesting browser."""
    return SessionResponse(status=view.state.status.value, user=view.user)


@router.get("/bookmarks", response_model=list[BookmarkResponse])
async def list_bookmarks(
    _user: SessionUser = Depends(get_current_user),
    view: BookmarkView = Depends(get_view),
    settings: Settings = Depends(get_app_settings),
) -> list[BookmarkResponse]:
    """The local list in display order (not re-fetched)."""
    return [to_response(bm, settings) for bm in view.bookmarks]


@router.post("/bookmarks", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    _user: SessionUser = Depends(get_current_user),
    view: BookmarkView = Depends(get_view),
    settings: Settings = Depends(get_app_settings),
) -> BookmarkResponse:
    """Create a bookmark; it is prepended to the local list."""
    record = await view.submit_add(data.title, data.url)
    if record is None:
        raise HTTPException(
            status_code=502,
            detail=view.pop_alert() or "Failed to save bookmark",
        )
    return to_response(record, settings)


@router.delete("/bookmarks/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: str,
    _user: SessionUser = Depends(get_current_user),
    view: BookmarkView = Depends(get_view),
) -> None:
    """Delete a bookmark. Failures are tolerated and leave the item listed."""
    await view.delete(bookmark_id)
