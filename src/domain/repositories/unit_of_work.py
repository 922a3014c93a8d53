"""Unit of Work protocol."""

from typing import Protocol

from domain.repositories.audit_log_repository import IAuditLogRepository
from domain.repositories.invitation_repository import IInvitationRepository
from domain.repositories.tenant_repository import IRoleRepository, ITenantRepository
from domain.repositories.user_repository import IUserRepository


class IUnitOfWork(Protocol):
    """Unit of Work interface for managing transactions."""

    invitations: IInvitationRepository
    audit_logs: IAuditLogRepository
    tenants: ITenantRepository
    roles: IRoleRepository
    users: IUserRepository

    async def commit(self) -> None:
        """Commit the current transaction."""
        ...

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        ...

    async def __aenter__(self) -> "IUnitOfWork":
        """Enter the context manager."""
        ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        """Exit the context manager."""
        ...
