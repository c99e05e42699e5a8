"""HTML page: sign-in card, add form, and bookmark list."""
from functools import partial
from pathlib import Path

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from api.dependencies import get_app_settings, get_browser_key, get_view, get_view_registry
from core.config import Settings
from services.bookmark_view import BookmarkView, SessionStatus
from services.favicon import favicon_url, safe_href
from services.view_registry import ViewRegistry

templates = Jinja2Templates(directory=Path(__file__).resolve().parent.parent / "templates")

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
async def index(
    request: Request,
    view: BookmarkView = Depends(get_view),
    settings: Settings = Depends(get_app_settings),
) -> HTMLResponse:
    """Render the page from the view's current state."""
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "loading": view.state.status is SessionStatus.LOADING,
            "user": view.user,
            "bookmarks": view.bookmarks,
            "form": view.store.form,
            "alert": view.pop_alert(),
            "safe_href": safe_href,
            "favicon_url": partial(
                favicon_url,
                service_url=settings.favicon_service_url,
                size=settings.favicon_size,
            ),
        },
    )


@router.post("/bookmarks")
async def add_bookmark(
    title: str = Form(...),
    url: str = Form(...),
    view: BookmarkView = Depends(get_view),
) -> RedirectResponse:
    """Handle the add form."""
    await view.submit_add(title, url)
    return RedirectResponse("/", status_code=303)


@router.post("/bookmarks/{bookmark_id}/delete")
async def delete_bookmark(
    bookmark_id: str,
    view: BookmarkView = Depends(get_view),
) -> RedirectResponse:
    """Handle a delete button."""
    await view.delete(bookmark_id)
    return RedirectResponse("/", status_code=303)


@router.post("/refresh")
async def refresh(
    key: str = Depends(get_browser_key),
    registry: ViewRegistry = Depends(get_view_registry),
) -> RedirectResponse:
    """Full reload: rebuild the view so the list is fetched again."""
    await registry.reload(key)
    return RedirectResponse("/", status_code=303)
