"""Invitation audit log repository protocol."""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from domain.entities.audit import AuditLogEntry


class IAuditLogRepository(Protocol):
    """Repository interface for AuditLogEntry records."""

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append an audit entry."""
        ...

    async def list_for_invitation(
        self, invitation_id: UUID, tenant_id: UUID, limit: int = 50
    ) -> list[AuditLogEntry]:
        """Entries for one invitation of the tenant, newest first."""
        ...

    async def list_for_tenant(
        self,
        tenant_id: UUID,
        limit: int = 100,
        offset: int = 0,
        action: str | None = None,
    ) -> list[AuditLogEntry]:
        """Entries for a tenant, newest first."""
        ...

    async def list_by_actions(
        self,
        actions: tuple[str, ...],
        since: datetime,
        tenant_id: UUID | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        """Entries with one of the given actions created at or after ``since``."""
        ...

    async def list_since(self, tenant_id: UUID, since: datetime) -> list[AuditLogEntry]:
        """All tenant entries created at or after ``since``."""
        ...

    async def delete_for_invitations(self, invitation_ids: list[UUID]) -> int:
        """Delete entries that reference the given invitations."""
        ...

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete entries created before the cutoff."""
        ...
