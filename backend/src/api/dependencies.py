"""FastAPI dependencies for injection."""
import secrets

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings
from schemas.session import SessionUser
from services.bookmark_view import BookmarkView
from services.view_registry import ViewRegistry

# Key in the signed cookie session identifying the browser
BROWSER_KEY = "browser_key"


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with."""
    return request.app.state.settings


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Session factory created in the app lifespan."""
    return request.app.state.session_factory


def get_view_registry(request: Request) -> ViewRegistry:
    """View registry created in the app lifespan."""
    return request.app.state.view_registry


def get_browser_key(request: Request) -> str:
    """Return this browser's key, assigning one on first visit."""
    key = request.session.get(BROWSER_KEY)
    if not key:
        key = secrets.token_urlsafe(32)
        request.session[BROWSER_KEY] = key
    return key


async def get_view(
    key: str = Depends(get_browser_key),
    registry: ViewRegistry = Depends(get_view_registry),
) -> BookmarkView:
    """The started view for the requesting browser, with its session re-checked."""
    view = await registry.get_view(key)
    await view.sync_session()
    return view


async def get_current_user(view: BookmarkView = Depends(get_view)) -> SessionUser:
    """
    Dependency that returns the signed-in user of the requesting browser.

    Raises:
        HTTPException: 401 when the browser has no session.
    """
    if view.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return view.user
