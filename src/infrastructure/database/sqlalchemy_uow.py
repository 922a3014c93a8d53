"""SQLAlchemy Unit of Work implementation."""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.repositories.sqlalchemy_audit_log_repo import SQLAlchemyAuditLogRepository
from infrastructure.database.repositories.sqlalchemy_invitation_repo import SQLAlchemyInvitationRepository
from infrastructure.database.repositories.sqlalchemy_tenant_repo import (
    SQLAlchemyRoleRepository,
    SQLAlchemyTenantRepository,
)
from infrastructure.database.repositories.sqlalchemy_user_repo import SQLAlchemyUserRepository


class SQLAlchemyUnitOfWork:
    """Unit of Work implementation using SQLAlchemy.

    All repositories share one session, so writes made through any of them
    commit or roll back together.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    @property
    def invitations(self) -> SQLAlchemyInvitationRepository:
        """Get invitation repository."""
        return SQLAlchemyInvitationRepository(self._require_session())

    @property
    def audit_logs(self) -> SQLAlchemyAuditLogRepository:
        """Get invitation audit log repository."""
        return SQLAlchemyAuditLogRepository(self._require_session())

    @property
    def tenants(self) -> SQLAlchemyTenantRepository:
        """Get tenant repository."""
        return SQLAlchemyTenantRepository(self._require_session())

    @property
    def roles(self) -> SQLAlchemyRoleRepository:
        """Get role repository."""
        return SQLAlchemyRoleRepository(self._require_session())

    @property
    def users(self) -> SQLAlchemyUserRepository:
        """Get user repository."""
        return SQLAlchemyUserRepository(self._require_session())

    async def commit(self) -> None:
        """Commit the current transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        if self._session:
            await self._session.rollback()

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        """Enter the context manager and create session."""
        self._session = self._session_factory()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[Exception],
        exc_tb: Any,
    ) -> None:
        """Exit the context manager and cleanup."""
        if self._session:
            if exc_type:
                await self.rollback()
            await self._session.close()
            self._session = None

    def _require_session(self) -> AsyncSession:
        if not self._session:
            raise RuntimeError("UnitOfWork not initialized. Use as context manager.")
        return self._session
