"""Pytest configuration and fixtures."""

import os
import sys
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

# Disable rate limiting in tests
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.services.token_service import generate_token
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.auth.provider import TokenUser
from infrastructure.database.models import (
    Base,
    RoleModel,
    TenantInvitationModel,
    TenantInvitationRoleModel,
    TenantModel,
    UserModel,
)
from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork


# Compile JSONB as JSON for SQLite (used in tests)
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_: Any, compiler: Any, **kw: Any) -> str:
    return "JSON"


# Test database URL (SQLite in memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_SECRET_KEY = "test-secret-key"


@dataclass
class SeededTenant:
    """IDs of the rows created by the ``seeded`` fixture."""

    tenant_id: UUID
    admin_id: UUID
    admin_email: str
    member_role_id: UUID
    editor_role_id: UUID
    other_tenant_id: UUID
    other_role_id: UUID


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def uow_factory(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[], SQLAlchemyUnitOfWork]:
    """Unit of Work factory bound to the test database."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory)

    return factory


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for direct inspection."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session_factory: async_sessionmaker[AsyncSession]) -> SeededTenant:
    """Two tenants, an admin user and a few roles."""
    tenant_id, other_tenant_id = uuid4(), uuid4()
    admin_id = uuid4()
    member_role_id, editor_role_id, other_role_id = uuid4(), uuid4(), uuid4()

    async with session_factory() as session:
        session.add_all(
            [
                TenantModel(id=tenant_id, name="Acme", subdomain="acme", google_sso_enabled=True),
                TenantModel(id=other_tenant_id, name="Globex", subdomain="globex"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                RoleModel(id=member_role_id, tenant_id=tenant_id, name="Member"),
                RoleModel(id=editor_role_id, tenant_id=tenant_id, name="Editor"),
                RoleModel(id=other_role_id, tenant_id=other_tenant_id, name="Member"),
                UserModel(
                    id=admin_id,
                    tenant_id=tenant_id,
                    email="admin@acme.test",
                    first_name="Ada",
                    last_name="Admin",
                    password_hash="x",
                    auth_methods=["password"],
                    email_verified=True,
                ),
            ]
        )
        await session.commit()

    return SeededTenant(
        tenant_id=tenant_id,
        admin_id=admin_id,
        admin_email="admin@acme.test",
        member_role_id=member_role_id,
        editor_role_id=editor_role_id,
        other_tenant_id=other_tenant_id,
        other_role_id=other_role_id,
    )


@pytest.fixture
def insert_invitation(
    session_factory: async_sessionmaker[AsyncSession], seeded: SeededTenant
) -> Callable[..., Any]:
    """Insert an invitation row directly, bypassing the service rules."""

    async def insert(
        email: str = "invitee@example.com",
        status: str = "PENDING",
        expires_at: datetime | None = None,
        created_at: datetime | None = None,
        accepted_at: datetime | None = None,
        cancelled_at: datetime | None = None,
        role_ids: list[UUID] | None = None,
        tenant_id: UUID | None = None,
        token: str | None = None,
    ) -> TenantInvitationModel:
        now = datetime.utcnow()
        model = TenantInvitationModel(
            id=uuid4(),
            tenant_id=tenant_id or seeded.tenant_id,
            email=email,
            token=token or generate_token(),
            invited_by=seeded.admin_id,
            status=status,
            expires_at=expires_at or now + timedelta(days=7),
            accepted_at=accepted_at,
            cancelled_at=cancelled_at,
            created_at=created_at or now,
            updated_at=created_at or now,
        )
        async with session_factory() as session:
            session.add(model)
            await session.flush()
            session.add_all(
                TenantInvitationRoleModel(invitation_id=model.id, role_id=role_id)
                for role_id in (role_ids if role_ids is not None else [seeded.member_role_id])
            )
            await session.commit()
        return model

    return insert


@pytest.fixture
def auth_provider() -> JWTAuthProvider:
    """Create auth provider for testing."""
    return JWTAuthProvider(
        secret_key=TEST_SECRET_KEY,
        algorithm="HS256",
        expire_minutes=30,
    )


@pytest.fixture
def test_user(seeded: SeededTenant) -> TokenUser:
    """The seeded tenant admin as an authenticated user."""
    return TokenUser(
        id=seeded.admin_id,
        email=seeded.admin_email,
        tenant_id=seeded.tenant_id,
        role_ids=[seeded.member_role_id],
    )


@pytest.fixture
def auth_headers(auth_provider: JWTAuthProvider, test_user: TokenUser) -> dict[str, str]:
    """Create authorization headers."""
    token = auth_provider.create_access_token(
        user_id=test_user.id,
        tenant_id=test_user.tenant_id,
        role_ids=test_user.role_ids,
        email=test_user.email,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client (no auth)."""
    from main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def sent_emails() -> list[Any]:
    """Messages captured by the test email sender."""
    return []


@pytest.fixture
def google_provider() -> Any:
    """Google identity provider for acceptance; None leaves Google sign-in unconfigured."""
    return None


@pytest.fixture
async def app_client(
    uow_factory: Callable[[], SQLAlchemyUnitOfWork],
    auth_provider: JWTAuthProvider,
    sent_emails: list[Any],
    google_provider: Any,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client wired to the in-memory database.

    This client:
    - Uses an in-memory SQLite database
    - Verifies bearer tokens with the test auth provider
    - Rebuilds every invitation service on the test UoW factory
    - Captures outgoing email instead of sending it
    """
    from api.dependencies.auth import get_auth_provider
    from api.v1.dependencies import (
        get_acceptance_service,
        get_invitation_service,
        get_management_service,
        get_validation_service,
        get_verification_service,
    )
    from domain.services.acceptance_service import InvitationAcceptanceService
    from domain.services.audit_service import InvitationAuditService
    from domain.services.invitation_service import InvitationService
    from domain.services.management_service import InvitationManagementService
    from domain.services.notification_service import EmailMessage, InvitationNotificationService
    from domain.services.token_service import InvitationValidationService
    from domain.services.verification_service import EmailVerificationService
    from infrastructure.auth.password import BcryptPasswordHasher
    from main import create_app

    class CapturingSender:
        async def send(self, message: EmailMessage) -> str:
            sent_emails.append(message)
            return f"msg-{len(sent_emails)}"

    sender = CapturingSender()
    audit = InvitationAuditService(uow_factory)
    notification = InvitationNotificationService(
        sender, audit, frontend_url="http://frontend.test", backoff_base_seconds=0
    )
    validation = InvitationValidationService(uow_factory, audit)
    invitations = InvitationService(uow_factory, validation, audit, notification)
    management = InvitationManagementService(uow_factory, invitations, audit)
    verification = EmailVerificationService(uow_factory, sender)
    acceptance = InvitationAcceptanceService(
        uow_factory,
        validation_service=validation,
        invitation_service=invitations,
        password_hasher=BcryptPasswordHasher(rounds=4),
        token_issuer=auth_provider,
        google_provider=google_provider,
        verification_service=verification,
        notification_service=notification,
    )

    app = create_app()
    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_validation_service] = lambda: validation
    app.dependency_overrides[get_invitation_service] = lambda: invitations
    app.dependency_overrides[get_management_service] = lambda: management
    app.dependency_overrides[get_acceptance_service] = lambda: acceptance
    app.dependency_overrides[get_verification_service] = lambda: verification

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
