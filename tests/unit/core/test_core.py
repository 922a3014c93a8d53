"""Unit tests for core helpers: best-effort calls, rate limit keys and handler."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from core.best_effort import best_effort
from core.rate_limit import (
    ADMIN_QUOTA_SCOPE,
    TENANT_QUOTA_SCOPE,
    user_rate_limit_key,
    rate_limit_exceeded_handler,
    tenant_rate_limit_key,
)


def _request(path: str = "/api/v1/invitations", user: object | None = None) -> MagicMock:
    request = MagicMock()
    request.url.path = path
    request.state = SimpleNamespace() if user is None else SimpleNamespace(current_user=user)
    request.client.host = "198.51.100.4"
    request.headers = {"user-agent": "pytest"}
    return request


class TestBestEffort:
    @pytest.mark.asyncio
    async def test_awaits_call(self):
        call = AsyncMock(return_value="ok")

        await best_effort("action", call())

        call.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_swallows_failure(self):
        call = AsyncMock(side_effect=RuntimeError("boom"))

        await best_effort("action", call(), invitation_id="x")

        call.assert_awaited_once()


def _user() -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), tenant_id=uuid4())


def _quota_exceeded(scope: str | None) -> Exception:
    exc = Exception("100 per 1 day")
    exc.limit = SimpleNamespace(scope=scope)  # type: ignore[attr-defined]
    return exc


class TestRateLimitKeys:
    def test_tenant_key_uses_caller_tenant(self):
        user = _user()
        assert tenant_rate_limit_key(_request(user=user)) == f"tenant:{user.tenant_id}"

    def test_admin_key_uses_caller_id(self):
        user = _user()
        assert user_rate_limit_key(_request(user=user)) == f"user:{user.id}"

    def test_users_in_one_tenant_share_the_tenant_key(self):
        first, second = _user(), _user()
        second.tenant_id = first.tenant_id

        assert tenant_rate_limit_key(_request(user=first)) == tenant_rate_limit_key(
            _request(user=second)
        )
        assert user_rate_limit_key(_request(user=first)) != user_rate_limit_key(
            _request(user=second)
        )

    def test_anonymous_requests_fall_back_to_client_address(self):
        assert tenant_rate_limit_key(_request()) == "198.51.100.4"
        assert user_rate_limit_key(_request()) == "198.51.100.4"


class TestRateLimitHandler:
    @pytest.mark.asyncio
    async def test_returns_429_body(self):
        response = await rate_limit_exceeded_handler(_request("/health"), Exception("10 per 1 minute"))

        assert response.status_code == 429
        body = json.loads(response.body)
        assert body["statusCode"] == 429
        assert body["error_code"] == "RATE_LIMIT_EXCEEDED"
        assert body["message"] == "Rate limit exceeded: 10 per 1 minute"

    @pytest.mark.asyncio
    async def test_invitation_routes_are_audited_with_redacted_path(self):
        audit = AsyncMock()
        token = "c" * 64

        with patch("api.v1.dependencies.get_audit_service", return_value=audit):
            await rate_limit_exceeded_handler(
                _request(f"/api/v1/invitation-acceptance/{token}"), Exception("10 per 1 minute")
            )

        kwargs = audit.log_rate_limit_exceeded.await_args.kwargs
        assert kwargs["ip_address"] == "198.51.100.4"
        assert kwargs["metadata"]["path"] == "/api/v1/invitation-acceptance/cccccccc..."
        assert token not in json.dumps(kwargs["metadata"])

    @pytest.mark.asyncio
    async def test_other_routes_are_not_audited(self):
        audit = AsyncMock()

        with patch("api.v1.dependencies.get_audit_service", return_value=audit):
            await rate_limit_exceeded_handler(_request("/health"), Exception("limit"))

        audit.log_rate_limit_exceeded.assert_not_called()

    @pytest.mark.asyncio
    async def test_audit_failure_still_returns_429(self):
        audit = AsyncMock()
        audit.log_rate_limit_exceeded.side_effect = RuntimeError("db down")

        with patch("api.v1.dependencies.get_audit_service", return_value=audit):
            response = await rate_limit_exceeded_handler(
                _request("/api/v1/invitations"), Exception("limit")
            )

        assert response.status_code == 429

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("scope", "expected"),
        [(TENANT_QUOTA_SCOPE, "tenant"), (ADMIN_QUOTA_SCOPE, "admin"), (None, "ip")],
    )
    async def test_audit_records_quota_scope_and_caller(self, scope, expected):
        audit = AsyncMock()
        user = _user()

        with patch("api.v1.dependencies.get_audit_service", return_value=audit):
            await rate_limit_exceeded_handler(
                _request("/api/v1/invitations", user=user), _quota_exceeded(scope)
            )

        kwargs = audit.log_rate_limit_exceeded.await_args.kwargs
        assert kwargs["metadata"]["scope"] == expected
        assert kwargs["tenant_id"] == user.tenant_id
        assert kwargs["user_id"] == user.id


class TestDatabaseEngine:
    def test_engine_hides_bound_parameters(self):
        from infrastructure.database.session import engine

        assert engine.sync_engine.hide_parameters is True
