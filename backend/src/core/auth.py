"""Auth0 identity provider client: authorization redirect, token grants, ID token checks."""
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx
import jwt
from jwt import PyJWKClient

from core.config import Settings

logger = logging.getLogger(__name__)

# Cache for JWKS client (reuse across requests)
_jwks_clients: dict[str, PyJWKClient] = {}

DEFAULT_SCOPE = "openid profile email offline_access"


class IdentityProviderError(Exception):
    """Raised when the identity provider rejects or fails a sign-in step."""

    pass


@dataclass(frozen=True)
class TokenSet:
    """Tokens returned by the provider's token endpoint."""

    access_token: str
    id_token: str | None
    refresh_token: str | None
    expires_in: int


def get_jwks_client(settings: Settings) -> PyJWKClient:
    """Get or create a cached JWKS client for the given settings."""
    if settings.auth0_jwks_url not in _jwks_clients:
        _jwks_clients[settings.auth0_jwks_url] = PyJWKClient(
            settings.auth0_jwks_url,
            cache_jwk_set=True,
            lifespan=3600,  # Cache keys for 1 hour
        )
    return _jwks_clients[settings.auth0_jwks_url]


def decode_id_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Decode and validate an ID token issued by Auth0 for this client.

    Raises:
        IdentityProviderError: If the token is invalid, expired, or has the
            wrong audience/issuer, or the signing keys cannot be fetched.
    """
    try:
        jwks_client = get_jwks_client(settings)
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=settings.auth0_client_id,
            issuer=settings.auth0_issuer,
        )

    except jwt.ExpiredSignatureError:
        raise IdentityProviderError("ID token has expired")
    except jwt.InvalidAudienceError:
        raise IdentityProviderError("Invalid audience")
    except jwt.InvalidIssuerError:
        raise IdentityProviderError("Invalid issuer")
    except jwt.PyJWKClientError as e:
        logger.error("Failed to fetch JWKS from Auth0: %s", e, exc_info=True)
        raise IdentityProviderError("Could not validate credentials")
    except jwt.PyJWTError as e:
        # Log full details for debugging (server-side only)
        logger.warning("ID token validation failed: %s", e, exc_info=True)
        raise IdentityProviderError("Invalid ID token")


class Auth0IdentityProvider:
    """
    Thin client for the Auth0 endpoints used by the sign-in redirect flow.

    Every call is a single request with the transport's default timeout; nothing
    is retried.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self._client = client or httpx.AsyncClient(base_url=settings.auth0_base_url)
        self._owns_client = client is None

    def authorization_url(self, provider: str, redirect_to: str, state: str) -> str:
        """Build the /authorize URL that starts sign-in with a social connection."""
        params = {
            "response_type": "code",
            "client_id": self.settings.auth0_client_id,
            "redirect_uri": redirect_to,
            "scope": DEFAULT_SCOPE,
            "connection": provider,
            "state": state,
        }
        if self.settings.auth0_audience:
            params["audience"] = self.settings.auth0_audience
        return f"{self.settings.auth0_base_url}/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_to: str) -> TokenSet:
        """Exchange an authorization code for tokens."""
        return await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_to,
        })

    async def refresh(self, refresh_token: str) -> TokenSet:
        """Get a new access token with a refresh token."""
        tokens = await self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })
        if tokens.refresh_token is None:
            # Without rotation Auth0 does not return the refresh token again
            return TokenSet(
                access_token=tokens.access_token,
                id_token=tokens.id_token,
                refresh_token=refresh_token,
                expires_in=tokens.expires_in,
            )
        return tokens

    async def revoke(self, refresh_token: str) -> None:
        """Revoke a refresh token."""
        try:
            response = await self._client.post(
                "/oauth/revoke",
                json={
                    "client_id": self.settings.auth0_client_id,
                    "client_secret": self.settings.auth0_client_secret,
                    "token": refresh_token,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Token revocation failed: {e}") from e

    def verify_id_token(self, id_token: str) -> dict[str, Any]:
        """Validate an ID token and return its claims."""
        return decode_id_token(id_token, self.settings)

    async def _token_request(self, grant: dict[str, str]) -> TokenSet:
        payload = {
            "client_id": self.settings.auth0_client_id,
            "client_secret": self.settings.auth0_client_secret,
            **grant,
        }
        try:
            response = await self._client.post("/oauth/token", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Auth0 %s grant failed with status %s",
                grant["grant_type"],
                e.response.status_code,
            )
            raise IdentityProviderError(
                f"Token request failed ({e.response.status_code})",
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise IdentityProviderError(f"Token request failed: {e}") from e

        if "access_token" not in data:
            raise IdentityProviderError("Token response missing access_token")
        return TokenSet(
            access_token=data["access_token"],
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in", 3600)),
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()
