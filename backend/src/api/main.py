"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.sessions import SessionMiddleware

from api.routers import auth, bookmarks, health, pages
from core.auth import Auth0IdentityProvider
from core.config import Settings, get_settings
from core.log_config import configure_logging
from db.session import create_engine, create_session_factory, create_tables
from services.session_manager import IdentityProvider
from services.view_registry import ViewRegistry

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    def __init__(self, app: object, hsts: bool = False) -> None:
        super().__init__(app)
        self.hsts = hsts

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        if self.hsts:
            # HSTS: enforce HTTPS for 1 year, including subdomains
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        return response


def create_app(
    settings: Settings | None = None,
    identity_provider: IdentityProvider | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use instead of the environment.
        identity_provider: Provider client to use instead of Auth0 (tests).
    """
    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Manage application lifespan - startup and shutdown."""
        configure_logging(app_settings.log_level)

        # Startup: database
        engine = create_engine(app_settings)
        if app_settings.db_create_tables:
            await create_tables(engine)
        session_factory = create_session_factory(engine)

        # Startup: identity provider and per-browser views
        provider = identity_provider or Auth0IdentityProvider(app_settings)
        registry = ViewRegistry(
            provider,
            session_factory,
            redirect_to=app_settings.auth_callback_url,
            connection=app_settings.auth0_connection,
            idle_timeout=app_settings.view_idle_timeout,
            max_views=app_settings.max_views,
        )

        app.state.settings = app_settings
        app.state.session_factory = session_factory
        app.state.view_registry = registry
        logger.info("SmartMark started (site %s)", app_settings.site_url)

        yield

        # Shutdown: release view subscriptions, then connections
        await registry.close()
        if isinstance(provider, Auth0IdentityProvider):
            await provider.aclose()
        await engine.dispose()

    app = FastAPI(
        title="SmartMark",
        description="Personal bookmarks behind a social sign-in.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        SecurityHeadersMiddleware,
        hsts=app_settings.site_url.startswith("https://"),
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=app_settings.session_secret_key,
        same_site="lax",
        https_only=app_settings.cookie_secure,
    )

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(pages.router)
    app.include_router(bookmarks.router)
    return app


app = create_app()


def main() -> None:
    """Run the app with uvicorn."""
    uvicorn.run("api.main:app", host="0.0.0.0", port=8000)  # noqa: S104


if __name__ == "__main__":
    main()
