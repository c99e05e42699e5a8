"""Shared fixtures for API tests."""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from tests.conftest import sign_in


@asynccontextmanager
async def create_browser_client(
    app: FastAPI,
    code: str | None = None,
) -> AsyncGenerator[AsyncClient]:
    """
    Create a second browser: an AsyncClient with its own cookie jar.

    When ``code`` is given the browser is signed in as that user first.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as browser:
        if code is not None:
            await sign_in(browser, code)
        yield browser


async def add_bookmark(client: AsyncClient, title: str, url: str) -> dict:
    """Add a bookmark through the JSON API and return the created record."""
    response = await client.post("/api/bookmarks", json={"title": title, "url": url})
    assert response.status_code == 201
    return response.json()


# Constant for non-existent bookmark ID
FAKE_UUID = "00000000-0000-0000-0000-000000000000"
