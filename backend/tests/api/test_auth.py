"""Tests for the sign-in redirect, callback, and sign-out endpoints."""
from urllib.parse import parse_qs, urlparse

from httpx import AsyncClient

from tests.conftest import ALICE_ID, sign_in
from tests.fakes import IDP_AUTHORIZE_URL, FakeIdentityProvider


async def test_login_redirects_to_identity_provider(client: AsyncClient) -> None:
    """GET /auth/login sends the browser to the Google connection with our callback."""
    response = await client.get("/auth/login")

    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith(IDP_AUTHORIZE_URL)
    query = parse_qs(urlparse(location).query)
    assert query["connection"] == ["google-oauth2"]
    assert query["redirect_uri"] == ["http://test/auth/callback"]
    assert query["state"][0]


async def test_login_sets_session_cookie(client: AsyncClient) -> None:
    """The browser key is stored in the signed session cookie."""
    response = await client.get("/auth/login")
    assert "session" in response.cookies


async def test_callback_signs_in(client: AsyncClient) -> None:
    """A valid callback signs the browser in and returns to the page."""
    response = await client.get("/auth/login")
    state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]

    response = await client.get("/auth/callback", params={"code": "alice", "state": state})

    assert response.status_code == 303
    assert response.headers["location"] == "/"
    session = (await client.get("/api/session")).json()
    assert session["status"] == "authenticated"
    assert session["user"]["id"] == ALICE_ID


async def test_callback_with_provider_error_shows_alert(client: AsyncClient) -> None:
    """A cancelled sign-in is reported on the page once."""
    await client.get("/auth/login")

    response = await client.get(
        "/auth/callback",
        params={"error": "access_denied", "error_description": "User cancelled"},
    )

    assert response.status_code == 303
    page = await client.get("/")
    assert "Sign-in failed: User cancelled" in page.text
    assert "Sign in with Google" in page.text
    page = await client.get("/")
    assert "Sign-in failed" not in page.text


async def test_callback_with_forged_state_rejected(
    client: AsyncClient, identity_provider: FakeIdentityProvider,
) -> None:
    """A state that this browser did not issue never reaches the provider."""
    await client.get("/auth/login")

    await client.get("/auth/callback", params={"code": "alice", "state": "forged"})

    assert identity_provider.exchanged == []
    page = await client.get("/")
    assert "Sign-in failed: Sign-in state mismatch" in page.text


async def test_callback_without_code(client: AsyncClient) -> None:
    """A callback with neither code nor error is a failed sign-in."""
    await client.get("/auth/callback")

    page = await client.get("/")
    assert "Sign-in failed: missing code" in page.text


async def test_logout_signs_out(
    alice_client: AsyncClient, identity_provider: FakeIdentityProvider,
) -> None:
    """POST /auth/logout revokes the refresh token and shows the sign-in card."""
    response = await alice_client.post("/auth/logout")

    assert response.status_code == 303
    assert identity_provider.revoked == ["rt-alice"]
    page = await alice_client.get("/")
    assert "Sign in with Google" in page.text
    assert (await alice_client.get("/api/session")).json()["status"] == "unauthenticated"


async def test_expired_session_refreshed_on_next_request(
    client: AsyncClient, identity_provider: FakeIdentityProvider,
) -> None:
    """A session that expires after sign-in is refreshed and stays signed in."""
    identity_provider.expires_in = 0
    await sign_in(client, "alice")

    session = (await client.get("/api/session")).json()

    assert session["status"] == "authenticated"
    assert identity_provider.refreshed == ["rt-alice"]
    assert (await client.get("/api/bookmarks")).status_code == 200


async def test_expired_session_signs_out_when_refresh_fails(
    client: AsyncClient, identity_provider: FakeIdentityProvider,
) -> None:
    """A refused refresh signs the browser out on its next request."""
    identity_provider.expires_in = 0
    identity_provider.fail_refresh = True
    await sign_in(client, "alice")

    session = (await client.get("/api/session")).json()

    assert session == {"status": "unauthenticated", "user": None}
    assert (await client.get("/api/bookmarks")).status_code == 401
    assert "Sign in with Google" in (await client.get("/")).text
