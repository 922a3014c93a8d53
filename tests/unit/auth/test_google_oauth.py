"""Unit tests for GoogleOAuthClient.

Google's endpoints are replaced with an httpx.MockTransport. ID tokens are
signed with a throwaway RSA key served from the mocked JWKS endpoint.
"""

import base64
import time
from typing import Any
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt as jose_jwt

from core.config import Settings
from core.exceptions import GoogleAuthError
from infrastructure.auth import google_oauth
from infrastructure.auth.google_oauth import GoogleOAuthClient

CLIENT_ID = "client-123.apps.googleusercontent.com"
KID = "test-key"

_PRIVATE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
PRIVATE_PEM = _PRIVATE_KEY.private_bytes(
    serialization.Encoding.PEM,
    serialization.PrivateFormat.PKCS8,
    serialization.NoEncryption(),
).decode()


def _b64_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


_PUBLIC_NUMBERS = _PRIVATE_KEY.public_key().public_numbers()
JWK = {
    "kty": "RSA",
    "kid": KID,
    "alg": "RS256",
    "use": "sig",
    "n": _b64_uint(_PUBLIC_NUMBERS.n),
    "e": _b64_uint(_PUBLIC_NUMBERS.e),
}

SYMMETRIC_SECRET = "shared-secret"
SYMMETRIC_JWK = {
    "kty": "oct",
    "kid": "symmetric",
    "k": base64.urlsafe_b64encode(SYMMETRIC_SECRET.encode()).rstrip(b"=").decode(),
}


def _settings() -> Settings:
    return Settings(
        google_client_id=CLIENT_ID,
        google_client_secret="shh",
        google_redirect_uri="http://frontend.test/callback",
        jwt_secret_key="state-secret",
        oauth_state_ttl_seconds=600,
    )


def _id_token(**overrides: Any) -> str:
    now = int(time.time())
    claims: dict[str, Any] = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "1234567890",
        "email": "jane@example.com",
        "email_verified": True,
        "given_name": "Jane",
        "family_name": "Doe",
        "iat": now,
        "exp": now + 300,
    }
    claims.update(overrides)
    return jose_jwt.encode(claims, PRIVATE_PEM, algorithm="RS256", headers={"kid": KID})


def _client(handler: Any) -> GoogleOAuthClient:
    return GoogleOAuthClient(
        _settings(), http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


def _google(
    token_response: dict[str, Any] | None = None,
    status_code: int = 200,
    keys: list[dict[str, Any]] | None = None,
    jwks_requests: list[httpx.Request] | None = None,
) -> Any:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/token"):
            return httpx.Response(status_code, json=token_response or {})
        if request.url.path.endswith("/certs"):
            if jwks_requests is not None:
                jwks_requests.append(request)
            return httpx.Response(200, json={"keys": keys if keys is not None else [JWK]})
        return httpx.Response(404)

    return handler


# --- state ---


class TestState:
    def test_round_trip(self):
        client = GoogleOAuthClient(_settings())
        invitation_id = uuid4()

        assert client.read_state(client.create_state(invitation_id)) == invitation_id

    def test_rejects_tampered_state(self):
        client = GoogleOAuthClient(_settings())
        forged = jose_jwt.encode(
            {"invitation_id": str(uuid4()), "purpose": "invitation_google_auth"},
            "attacker-secret",
            algorithm="HS256",
        )

        with pytest.raises(GoogleAuthError):
            client.read_state(forged)

    def test_rejects_other_purpose(self):
        client = GoogleOAuthClient(_settings())
        other = jose_jwt.encode(
            {"invitation_id": str(uuid4()), "purpose": "session"}, "state-secret", algorithm="HS256"
        )

        with pytest.raises(GoogleAuthError):
            client.read_state(other)


class TestAuthUrl:
    def test_contains_oauth_parameters(self):
        client = GoogleOAuthClient(_settings())

        url = urlparse(client.generate_auth_url("the-state"))
        params = parse_qs(url.query)

        assert url.netloc == "accounts.google.com"
        assert params["client_id"] == [CLIENT_ID]
        assert params["response_type"] == ["code"]
        assert params["scope"] == ["openid email profile"]
        assert params["state"] == ["the-state"]
        assert params["redirect_uri"] == ["http://frontend.test/callback"]


# --- code exchange ---


class TestExchangeCode:
    @pytest.mark.asyncio
    async def test_returns_tokens(self):
        seen: list[httpx.Request] = []
        inner = _google({"id_token": "id.jwt", "access_token": "at"})

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return inner(request)

        tokens = await _client(handler).exchange_code_for_tokens("auth-code")

        assert tokens.id_token == "id.jwt"
        assert tokens.access_token == "at"
        body = parse_qs(seen[0].content.decode())
        assert body["grant_type"] == ["authorization_code"]
        assert body["code"] == ["auth-code"]

    @pytest.mark.asyncio
    async def test_rejected_code(self):
        client = _client(_google({"error": "invalid_grant"}, status_code=400))

        with pytest.raises(GoogleAuthError):
            await client.exchange_code_for_tokens("bad")

    @pytest.mark.asyncio
    async def test_missing_id_token(self):
        client = _client(_google({"access_token": "at"}))

        with pytest.raises(GoogleAuthError):
            await client.exchange_code_for_tokens("code")


# --- ID token verification ---


class TestVerifyIdToken:
    @pytest.mark.asyncio
    async def test_returns_profile(self):
        profile = await _client(_google()).verify_id_token(_id_token())

        assert profile.id == "1234567890"
        assert profile.email == "jane@example.com"
        assert profile.first_name == "Jane"
        assert profile.last_name == "Doe"
        assert profile.email_verified is True

    @pytest.mark.asyncio
    async def test_wrong_audience(self):
        with pytest.raises(GoogleAuthError):
            await _client(_google()).verify_id_token(_id_token(aud="someone-else"))

    @pytest.mark.asyncio
    async def test_wrong_issuer(self):
        with pytest.raises(GoogleAuthError):
            await _client(_google()).verify_id_token(_id_token(iss="https://evil.example.com"))

    @pytest.mark.asyncio
    async def test_expired(self):
        with pytest.raises(GoogleAuthError):
            await _client(_google()).verify_id_token(_id_token(exp=int(time.time()) - 60))

    @pytest.mark.asyncio
    async def test_unknown_key_id(self):
        token = jose_jwt.encode(
            {"sub": "1", "aud": CLIENT_ID}, PRIVATE_PEM, algorithm="RS256", headers={"kid": "x"}
        )

        with pytest.raises(GoogleAuthError):
            await _client(_google()).verify_id_token(token)

    @pytest.mark.asyncio
    async def test_garbage_token(self):
        with pytest.raises(GoogleAuthError):
            await _client(_google()).verify_id_token("not-a-jwt")

    @pytest.mark.asyncio
    async def test_rejects_symmetric_signature_even_with_published_key(self):
        token = jose_jwt.encode(
            {
                "iss": "https://accounts.google.com",
                "aud": CLIENT_ID,
                "sub": "1",
                "email": "mallory@example.com",
                "exp": int(time.time()) + 300,
            },
            SYMMETRIC_SECRET,
            algorithm="HS256",
            headers={"kid": "symmetric"},
        )
        client = _client(_google(keys=[JWK, SYMMETRIC_JWK]))

        with pytest.raises(GoogleAuthError):
            await client.verify_id_token(token)


class TestJwksCache:
    @pytest.mark.asyncio
    async def test_keys_are_fetched_once(self):
        jwks_requests: list[httpx.Request] = []
        client = _client(_google(jwks_requests=jwks_requests))

        await client.verify_id_token(_id_token())
        await client.verify_id_token(_id_token(sub="42"))

        assert len(jwks_requests) == 1

    @pytest.mark.asyncio
    async def test_unknown_kid_triggers_one_refetch(self):
        jwks_requests: list[httpx.Request] = []
        published: list[dict[str, Any]] = [{**JWK, "kid": "old-key"}]
        client = _client(_google(keys=published, jwks_requests=jwks_requests))

        with pytest.raises(GoogleAuthError):
            await client.verify_id_token(_id_token())
        fetched = len(jwks_requests)

        # Google rotates to the key the token was signed with
        published.append(JWK)
        profile = await client.verify_id_token(_id_token())

        assert profile.email == "jane@example.com"
        assert len(jwks_requests) == fetched + 1

    @pytest.mark.asyncio
    async def test_stale_cache_is_refreshed(self, monkeypatch: pytest.MonkeyPatch):
        jwks_requests: list[httpx.Request] = []
        client = _client(_google(jwks_requests=jwks_requests))
        await client.verify_id_token(_id_token())

        monkeypatch.setattr(google_oauth, "JWKS_CACHE_TTL_SECONDS", -1)
        await client.verify_id_token(_id_token())

        assert len(jwks_requests) == 2
