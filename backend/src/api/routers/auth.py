"""Sign-in redirect, provider callback, and sign-out endpoints."""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from api.dependencies import get_view
from services.bookmark_view import BookmarkView

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/login")
async def login(view: BookmarkView = Depends(get_view)) -> RedirectResponse:
    """Send the browser to the identity provider."""
    return RedirectResponse(view.sign_in(), status_code=302)


@router.get("/callback")
async def callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
    view: BookmarkView = Depends(get_view),
) -> RedirectResponse:
    """
    Handle the provider redirect.

    Success is picked up by the view through its SIGNED_IN notification; a
    failure is shown as the page alert.
    """
    if error or not code:
        view.state.alert = f"Sign-in failed: {error_description or error or 'missing code'}"
    else:
        await view.complete_sign_in(code, state)
    return RedirectResponse("/", status_code=303)


@router.post("/logout")
async def logout(view: BookmarkView = Depends(get_view)) -> RedirectResponse:
    """Sign out and return to the sign-in page."""
    await view.sign_out()
    return RedirectResponse("/", status_code=303)
