"""Google OAuth 2.0 / OpenID Connect client for invitation sign-in."""

import time
from typing import Any
from urllib.parse import urlencode
from uuid import UUID

import httpx
import structlog
from jose import JWTError, jwt

from core.config import Settings
from core.exceptions import GoogleAuthError
from core.logging import error_summary
from domain.services.acceptance_service import GoogleProfile, GoogleTokens

logger = structlog.get_logger()

DEFAULT_SCOPES = "openid email profile"
GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")
STATE_ALGORITHM = "HS256"
STATE_PURPOSE = "invitation_google_auth"
# Google signs ID tokens with RS256 only
ID_TOKEN_ALGORITHMS = ["RS256"]
JWKS_CACHE_TTL_SECONDS = 3600


class GoogleOAuthClient:
    """Authorization-code flow against Google.

    The ``state`` parameter is a short-lived signed JWT carrying the
    invitation id, so the callback can be tied back to the invitation.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._client_id = settings.google_client_id
        self._client_secret = settings.google_client_secret
        self._redirect_uri = settings.google_redirect_uri
        self._auth_endpoint = settings.google_auth_endpoint
        self._token_endpoint = settings.google_token_endpoint
        self._jwks_uri = settings.google_jwks_uri
        self._timeout = settings.google_http_timeout_seconds
        self._state_secret = settings.jwt_secret_key
        self._state_ttl = settings.oauth_state_ttl_seconds
        self._http_client = http_client
        self._jwks_cache: dict[str, dict[str, Any]] | None = None
        self._jwks_fetched_at = 0.0

    def create_state(self, invitation_id: UUID) -> str:
        now = int(time.time())
        payload = {
            "invitation_id": str(invitation_id),
            "purpose": STATE_PURPOSE,
            "iat": now,
            "exp": now + self._state_ttl,
        }
        return jwt.encode(payload, self._state_secret, algorithm=STATE_ALGORITHM)

    def read_state(self, state: str) -> UUID:
        """Decode a state token. Raises GoogleAuthError if it is invalid or expired."""
        try:
            payload = jwt.decode(state, self._state_secret, algorithms=[STATE_ALGORITHM])
            if payload.get("purpose") != STATE_PURPOSE:
                raise GoogleAuthError("Invalid OAuth state")
            return UUID(payload["invitation_id"])
        except (JWTError, KeyError, ValueError) as exc:
            raise GoogleAuthError("Invalid OAuth state") from exc

    def generate_auth_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "scope": DEFAULT_SCOPES,
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{self._auth_endpoint}?{urlencode(params)}"

    async def exchange_code_for_tokens(self, code: str) -> GoogleTokens:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "redirect_uri": self._redirect_uri,
        }
        payload = await self._request("POST", self._token_endpoint, data=data)
        id_token = payload.get("id_token")
        if not id_token:
            raise GoogleAuthError()
        return GoogleTokens(id_token=id_token, access_token=payload.get("access_token"))

    async def verify_id_token(self, id_token: str) -> GoogleProfile:
        try:
            header = jwt.get_unverified_header(id_token)
        except JWTError as exc:
            raise GoogleAuthError() from exc

        kid = header.get("kid")
        keys = await self._get_jwks_keys()
        key = keys.get(kid)
        if key is None:
            # Unknown kid: Google may have rotated keys since the last fetch
            keys = await self._get_jwks_keys(refresh=True)
            key = keys.get(kid)
        if key is None:
            logger.warning("google_jwks_key_not_found", kid=kid)
            raise GoogleAuthError()

        try:
            claims = jwt.decode(
                id_token,
                key,
                algorithms=ID_TOKEN_ALGORITHMS,
                audience=self._client_id,
                options={"verify_at_hash": False},
            )
        except JWTError as exc:
            raise GoogleAuthError() from exc

        if claims.get("iss") not in GOOGLE_ISSUERS or not claims.get("email"):
            raise GoogleAuthError()

        return GoogleProfile(
            id=str(claims["sub"]),
            email=claims["email"],
            first_name=claims.get("given_name"),
            last_name=claims.get("family_name"),
            email_verified=bool(claims.get("email_verified")),
            picture=claims.get("picture"),
        )

    async def _get_jwks_keys(self, refresh: bool = False) -> dict[str, dict[str, Any]]:
        """Google signing keys by kid, cached on the client."""
        stale = time.monotonic() - self._jwks_fetched_at > JWKS_CACHE_TTL_SECONDS
        if self._jwks_cache is not None and not refresh and not stale:
            return self._jwks_cache

        jwks = await self._request("GET", self._jwks_uri)
        self._jwks_cache = {
            key_data["kid"]: key_data for key_data in jwks.get("keys", []) if key_data.get("kid")
        }
        self._jwks_fetched_at = time.monotonic()
        logger.info("google_jwks_fetched", key_count=len(self._jwks_cache))
        return self._jwks_cache

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            if self._http_client is not None:
                response = await self._http_client.request(method, url, timeout=self._timeout, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(method, url, timeout=self._timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            logger.error("google_request_failed", url=url, error=error_summary(exc))
            raise GoogleAuthError() from exc
