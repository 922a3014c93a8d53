"""Shared fixtures for unit tests."""

from datetime import datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from domain.entities.invitation import (
    Invitation,
    InvitationStatus,
    InviterSummary,
    RoleSummary,
    TenantSummary,
)
from domain.services.audit_service import InvitationAuditService
from domain.services.token_service import generate_token


class FakeUnitOfWork:
    """Fake Unit of Work with all 5 repository mocks for unit testing."""

    def __init__(self) -> None:
        self.invitations = AsyncMock()
        self.audit_logs = AsyncMock()
        self.tenants = AsyncMock()
        self.roles = AsyncMock()
        self.users = AsyncMock()
        self.invitations.count_created_for_email_since.return_value = 0
        self.committed = False
        self.rolled_back = False

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True

    async def __aenter__(self) -> "FakeUnitOfWork":
        return self

    async def __aexit__(self, exc_type: Any, *args: Any) -> None:
        if exc_type:
            self.rolled_back = True


@pytest.fixture
def uow() -> FakeUnitOfWork:
    """Create a fresh FakeUnitOfWork."""
    return FakeUnitOfWork()


@pytest.fixture
def audit() -> AsyncMock:
    """Audit service mock; assertions inspect the typed helper calls."""
    return AsyncMock(spec=InvitationAuditService)


@pytest.fixture
def tenant_id() -> UUID:
    """A random tenant ID."""
    return uuid4()


@pytest.fixture
def user_id() -> UUID:
    """A random user ID."""
    return uuid4()


@pytest.fixture
def actor_id() -> UUID:
    """A random actor ID (distinct from user_id)."""
    return uuid4()


def make_invitation(
    tenant_id: UUID | None = None,
    status: InvitationStatus = InvitationStatus.PENDING,
    expires_in: timedelta = timedelta(days=7),
    **overrides: Any,
) -> Invitation:
    """Build an invitation with resolved tenant, inviter and role data."""
    tenant_id = tenant_id or uuid4()
    inviter_id = overrides.pop("invited_by", uuid4())
    role = RoleSummary(id=uuid4(), name="Member")
    defaults: dict[str, Any] = {
        "tenant_id": tenant_id,
        "email": "invitee@example.com",
        "token": generate_token(),
        "invited_by": inviter_id,
        "expires_at": datetime.utcnow() + expires_in,
        "status": status,
        "role_ids": [role.id],
        "roles": [role],
        "tenant": TenantSummary(id=tenant_id, name="Acme", subdomain="acme"),
        "inviter": InviterSummary(
            id=inviter_id, email="admin@acme.test", first_name="Ada", last_name="Admin"
        ),
    }
    defaults.update(overrides)
    return Invitation(**defaults)
