"""Application configuration using pydantic-settings."""
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    # Create the bookmarks table on startup (local development and tests)
    db_create_tables: bool = Field(default=False, validation_alias="DB_CREATE_TABLES")

    # Auth0
    auth0_domain: str = Field(default="", validation_alias="AUTH0_DOMAIN")
    auth0_client_id: str = Field(default="", validation_alias="AUTH0_CLIENT_ID")
    auth0_client_secret: str = Field(default="", validation_alias="AUTH0_CLIENT_SECRET")
    auth0_audience: str = Field(default="", validation_alias="AUTH0_AUDIENCE")
    # Auth0 connection name of the social provider used for sign-in
    auth0_connection: str = Field(default="google-oauth2", validation_alias="AUTH0_CONNECTION")

    # Public origin of this site - the OAuth redirect target
    site_url: str = Field(default="http://localhost:8000", validation_alias="SITE_URL")

    # Cookie session
    session_secret_key: str = Field(
        default="change-me-in-production", validation_alias="SESSION_SECRET_KEY",
    )
    cookie_secure: bool = Field(default=False, validation_alias="COOKIE_SECURE")

    # Per-browser views: idle seconds before eviction, and the most held at once
    view_idle_timeout: float = Field(default=1800.0, validation_alias="VIEW_IDLE_TIMEOUT")
    max_views: int = Field(default=10_000, ge=1, validation_alias="MAX_VIEWS")

    # Favicons
    favicon_service_url: str = Field(
        default="https://www.google.com/s2/favicons",
        validation_alias="FAVICON_SERVICE_URL",
    )
    favicon_size: int = Field(default=64, validation_alias="FAVICON_SIZE")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @model_validator(mode="after")
    def validate_secure_cookie_origin(self) -> "Settings":
        """
        Require secure cookies when the site is served over HTTPS.

        The session cookie carries the browser key that unlocks a signed-in view,
        so it must never be sent over plain HTTP to an HTTPS site.
        """
        scheme = urlparse(self.site_url).scheme
        if scheme == "https" and not self.cookie_secure:
            raise ValueError(
                f"COOKIE_SECURE must be enabled when SITE_URL uses https ({self.site_url}).",
            )
        return self

    @property
    def auth0_base_url(self) -> str:
        """Get the Auth0 tenant base URL."""
        return f"https://{self.auth0_domain}"

    @property
    def auth0_issuer(self) -> str:
        """Get the Auth0 issuer URL."""
        return f"https://{self.auth0_domain}/"

    @property
    def auth0_jwks_url(self) -> str:
        """Get the Auth0 JWKS URL for fetching public keys."""
        return f"https://{self.auth0_domain}/.well-known/jwks.json"

    @property
    def auth_callback_url(self) -> str:
        """Get the URL the provider redirects back to after sign-in."""
        return f"{self.site_url.rstrip('/')}/auth/callback"

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite (local development and tests)."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
