"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import parse_qs, urlparse

# Must be set before any app imports that trigger Settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DB_CREATE_TABLES", "true")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)

from core.config import Settings  # noqa: E402
from db.session import create_engine, create_session_factory, create_tables  # noqa: E402
from tests.fakes import FakeIdentityProvider  # noqa: E402

ALICE_ID = "google-oauth2|alice"
BOB_ID = "google-oauth2|bob"


@pytest.fixture
def settings() -> Settings:
    """Settings for an in-memory database and a fake Auth0 tenant."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        db_create_tables=True,
        auth0_domain="tenant.auth0.test",
        auth0_client_id="test-client-id",
        auth0_client_secret="test-client-secret",
        site_url="http://test",
        session_secret_key="test-secret",
        log_level="DEBUG",
    )


@pytest.fixture
async def async_engine(settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine with the schema in place."""
    engine = create_engine(settings)
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(async_engine)


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    """Identity provider that knows two users, signed in with codes 'alice' and 'bob'."""
    return FakeIdentityProvider({
        "alice": {"sub": ALICE_ID, "email": "alice@example.com"},
        "bob": {"sub": BOB_ID, "email": "bob@example.com"},
    })


@pytest.fixture
async def app(settings: Settings, identity_provider: FakeIdentityProvider) -> AsyncGenerator[Any]:
    """Application with its lifespan running."""
    from api.main import create_app

    application = create_app(settings, identity_provider=identity_provider)
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient]:
    """Create a test client; cookies persist across requests like a browser."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client


async def sign_in(client: AsyncClient, code: str = "alice") -> None:
    """Run the redirect flow: /auth/login then /auth/callback with the issued state."""
    response = await client.get("/auth/login")
    assert response.status_code == 302
    state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]

    response = await client.get("/auth/callback", params={"code": code, "state": state})
    assert response.status_code == 303


@pytest.fixture
async def alice_client(client: AsyncClient) -> AsyncClient:
    """Test client signed in as alice."""
    await sign_in(client, "alice")
    return client
