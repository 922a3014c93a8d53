"""Tests for health check endpoints."""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.conftest import SeededTenant


@pytest.fixture
async def db_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Client whose database sessions come from the test engine."""
    from infrastructure.database.session import get_async_session
    from main import create_app

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_async_session] = _session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_returns_200(self, client: AsyncClient) -> None:
        """Test that health endpoint returns 200 OK."""
        response = await client.get("/health")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_health_returns_correct_structure(self, client: AsyncClient) -> None:
        """Test that health endpoint returns expected structure."""
        response = await client.get("/health")
        data = response.json()

        assert data["status"] == "healthy"
        assert data["service"] == "Tenant Invitations API"
        assert data["version"] == "1.0.0"
        assert "timestamp" in data
        assert "environment" in data


class TestDetailedHealthEndpoint:
    @pytest.mark.asyncio
    async def test_reports_database_and_empty_backlog(
        self, db_client: AsyncClient, seeded: SeededTenant
    ) -> None:
        response = await db_client.get("/health/detailed")

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["expiry_backlog"] == 0

    @pytest.mark.asyncio
    async def test_counts_lapsed_pending_invitations(
        self, db_client: AsyncClient, insert_invitation: Any
    ) -> None:
        await insert_invitation(
            email="late@acme.test", expires_at=datetime.utcnow() - timedelta(hours=1)
        )
        await insert_invitation(email="fine@acme.test")

        response = await db_client.get("/health/detailed")

        assert response.json()["expiry_backlog"] == 1

    @pytest.mark.asyncio
    async def test_backlog_does_not_load_invitation_rows(
        self, db_client: AsyncClient, insert_invitation: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from infrastructure.database.repositories.sqlalchemy_invitation_repo import (
            SQLAlchemyInvitationRepository,
        )

        async def _no_row_loading(*args: Any, **kwargs: Any) -> Any:
            raise AssertionError("health check must not load invitations")

        monkeypatch.setattr(SQLAlchemyInvitationRepository, "find_expired_pending", _no_row_loading)
        for i in range(3):
            await insert_invitation(
                email=f"late{i}@acme.test", expires_at=datetime.utcnow() - timedelta(hours=1)
            )

        response = await db_client.get("/health/detailed")

        data = response.json()
        assert data["database"] == "healthy"
        assert data["expiry_backlog"] == 3
