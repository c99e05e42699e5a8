"""Tests for the per-browser view registry."""
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.bookmark_store import BookmarkStore
from services.bookmark_view import SessionStatus
from services.view_registry import ViewRegistry
from tests.fakes import FakeIdentityProvider


@pytest.fixture
def registry(
    identity_provider: FakeIdentityProvider,
    session_factory: async_sessionmaker[AsyncSession],
) -> ViewRegistry:
    return ViewRegistry(identity_provider, session_factory, "http://test/auth/callback")


async def sign_in(registry: ViewRegistry, key: str, code: str = "alice") -> None:
    view = await registry.get_view(key)
    state = parse_qs(urlparse(view.sign_in()).query)["state"][0]
    assert await view.complete_sign_in(code, state)


async def test__get_view__creates_started_view_once(registry: ViewRegistry) -> None:
    """The same key returns the same started view."""
    first = await registry.get_view("browser-1")
    second = await registry.get_view("browser-1")

    assert first is second
    assert first.state.status is SessionStatus.UNAUTHENTICATED
    assert "browser-1" in registry
    assert len(registry) == 1


async def test__get_view__browsers_are_isolated(registry: ViewRegistry) -> None:
    """Signing in one browser does not sign in another."""
    await sign_in(registry, "browser-1")

    other = await registry.get_view("browser-2")

    assert other.user is None
    assert (await registry.get_view("browser-1")).user is not None


async def test__reload__keeps_session_and_fetches_again(registry: ViewRegistry) -> None:
    """A reload builds a new view that finds the session and lists once."""
    await sign_in(registry, "browser-1")
    old_view = await registry.get_view("browser-1")
    await old_view.submit_add("Example", "https://example.com")

    fetched_for: list[str] = []
    real_list = BookmarkStore.list_bookmarks

    async def counting_list(self: BookmarkStore, owner_id: str) -> bool:
        fetched_for.append(owner_id)
        return await real_list(self, owner_id)

    with patch.object(BookmarkStore, "list_bookmarks", counting_list):
        new_view = await registry.reload("browser-1")

    assert new_view is not old_view
    assert old_view.closed
    assert new_view.state.status is SessionStatus.AUTHENTICATED
    assert fetched_for == ["google-oauth2|alice"]
    assert [bm.title for bm in new_view.bookmarks] == ["Example"]


async def test__close__tears_down_every_view(registry: ViewRegistry) -> None:
    """Shutdown releases every view's subscription."""
    views = [await registry.get_view(key) for key in ("a", "b", "c")]

    await registry.close()

    assert len(registry) == 0
    assert all(view.closed for view in views)


async def test__discard__unknown_key_is_noop(registry: ViewRegistry) -> None:
    """Discarding a key without a view does nothing."""
    await registry.discard("never-seen")
    assert len(registry) == 0


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bounded_registry(
    identity_provider: FakeIdentityProvider,
    session_factory: async_sessionmaker[AsyncSession],
    clock: FakeClock,
) -> ViewRegistry:
    return ViewRegistry(
        identity_provider,
        session_factory,
        "http://test/auth/callback",
        idle_timeout=60,
        max_views=3,
        clock=clock,
    )


async def test__sweep__idle_views_evicted_and_unsubscribed(
    bounded_registry: ViewRegistry, clock: FakeClock,
) -> None:
    """Views idle past the timeout are closed and their subscription released."""
    idle = await bounded_registry.get_view("idle")
    assert idle.subscribed

    clock.now = 61
    await bounded_registry.get_view("fresh")

    assert "idle" not in bounded_registry
    assert idle.closed
    assert not idle.subscribed
    assert bounded_registry.storage_count == 1


async def test__sweep__recent_views_kept(
    bounded_registry: ViewRegistry, clock: FakeClock,
) -> None:
    """A view used within the timeout survives the sweep."""
    await bounded_registry.get_view("a")
    clock.now = 30
    await bounded_registry.get_view("b")
    clock.now = 70

    assert await bounded_registry.sweep() == 1
    assert "a" not in bounded_registry
    assert "b" in bounded_registry


async def test__get_view__cap_evicts_least_recently_used(
    bounded_registry: ViewRegistry, clock: FakeClock,
) -> None:
    """Past max_views the least recently used browser goes first."""
    for key in ("a", "b", "c"):
        clock.now += 1
        await bounded_registry.get_view(key)
    clock.now += 1
    await bounded_registry.get_view("a")

    clock.now += 1
    await bounded_registry.get_view("d")

    assert len(bounded_registry) == 3
    assert "b" not in bounded_registry
    assert all(key in bounded_registry for key in ("a", "c", "d"))
    assert bounded_registry.storage_count == 3


async def test__evict__signed_in_session_survives(
    bounded_registry: ViewRegistry, clock: FakeClock,
) -> None:
    """An evicted signed-in browser gets its session back on the next request."""
    await sign_in(bounded_registry, "browser-1")

    clock.now = 61
    await bounded_registry.sweep()
    assert "browser-1" not in bounded_registry
    assert bounded_registry.storage_count == 1

    view = await bounded_registry.get_view("browser-1")
    assert view.state.status is SessionStatus.AUTHENTICATED


async def test__evict__storage_dropped_after_sign_out(
    bounded_registry: ViewRegistry, clock: FakeClock,
) -> None:
    """A signed-out browser leaves nothing behind once evicted."""
    await sign_in(bounded_registry, "browser-1")
    await (await bounded_registry.get_view("browser-1")).sign_out()

    clock.now = 61
    await bounded_registry.sweep()

    assert bounded_registry.storage_count == 0


def test__init__rejects_zero_cap(
    identity_provider: FakeIdentityProvider,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    with pytest.raises(ValueError, match="max_views"):
        ViewRegistry(identity_provider, session_factory, "http://cb", max_views=0)
