"""Invitation audit trail service."""

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog

from core.logging import error_summary
from domain.entities.audit import AuditActions, AuditLogEntry
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()

SECURITY_ACTIONS = (AuditActions.VALIDATION_FAILED, AuditActions.RATE_LIMIT_EXCEEDED)


@dataclass
class AuditStatistics:
    """Aggregated audit activity for a tenant over a trailing window."""

    total_events: int = 0
    events_by_action: dict[str, int] = field(default_factory=dict)
    security_events: int = 0
    failed_events: int = 0
    success_rate: float = 100.0


class InvitationAuditService:
    """Writes and queries the invitation audit log.

    Writes run in their own unit of work so an audit failure can never roll
    back, or be rolled back by, the operation being audited. Every write
    failure is logged and swallowed.
    """

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def log_event(self, entry: AuditLogEntry) -> None:
        """Persist an audit entry. Never raises."""
        logger.info(
            "invitation_audit_event",
            action=entry.action,
            invitation_id=str(entry.invitation_id) if entry.invitation_id else None,
            tenant_id=str(entry.tenant_id) if entry.tenant_id else None,
            user_id=str(entry.user_id) if entry.user_id else None,
            success=entry.success,
            error_code=entry.error_code,
        )
        try:
            async with self._uow_factory() as uow:
                await uow.audit_logs.add(entry)
                await uow.commit()
        except Exception as exc:
            logger.error(
                "invitation_audit_write_failed",
                action=entry.action,
                error=error_summary(exc),
                error_type=type(exc).__name__,
            )

    # --- Typed helpers ---

    async def log_invitation_created(
        self,
        invitation_id: UUID | None,
        tenant_id: UUID,
        user_id: UUID,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.CREATED,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                metadata=metadata or {},
            )
        )

    async def log_invitation_sent(
        self,
        invitation_id: UUID,
        tenant_id: UUID,
        success: bool,
        user_id: UUID | None = None,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.SENT,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                user_id=user_id,
                success=success,
                error_code=None if success else "EMAIL_SEND_FAILED",
                error_message=error_message,
                metadata=metadata or {},
            )
        )

    async def log_invitation_resent(
        self,
        invitation_id: UUID | None,
        tenant_id: UUID,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.RESENT,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                metadata=metadata or {},
            )
        )

    async def log_invitation_cancelled(
        self,
        invitation_id: UUID | None,
        tenant_id: UUID,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.CANCELLED,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                metadata=metadata or {},
            )
        )

    async def log_invitation_accepted(
        self,
        invitation_id: UUID,
        tenant_id: UUID,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.ACCEPTED,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                metadata=metadata or {},
            )
        )

    async def log_invitation_expired(
        self,
        invitation_id: UUID,
        tenant_id: UUID,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.EXPIRED,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                metadata=metadata or {},
            )
        )

    async def log_invitation_validated(
        self,
        invitation_id: UUID | None,
        tenant_id: UUID | None,
        success: bool,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record the outcome of a token validation.

        Failures are written under the validation_failed action so they show up
        in security event queries.
        """
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.VALIDATED if success else AuditActions.VALIDATION_FAILED,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                success=success,
                error_code=None if success else "VALIDATION_FAILED",
                error_message=error_message,
                metadata=metadata or {},
            )
        )

    async def log_security_event(
        self,
        security_event: str,
        invitation_id: UUID | None = None,
        tenant_id: UUID | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.VALIDATION_FAILED,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                success=False,
                error_code="SECURITY_EVENT",
                error_message=security_event,
                metadata={"security_event": security_event, **(metadata or {})},
            )
        )

    async def log_rate_limit_exceeded(
        self,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
        invitation_id: UUID | None = None,
        tenant_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.RATE_LIMIT_EXCEEDED,
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                success=False,
                error_code="RATE_LIMIT_EXCEEDED",
                error_message="Rate limit exceeded for invitation operations",
                metadata=metadata or {},
            )
        )

    async def log_invitation_cleanup(
        self,
        tenant_id: UUID | None = None,
        user_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log_event(
            AuditLogEntry(
                action=AuditActions.CLEANUP,
                tenant_id=tenant_id,
                user_id=user_id,
                metadata=metadata or {},
            )
        )

    # --- Queries ---

    async def get_invitation_audit_logs(
        self, invitation_id: UUID, tenant_id: UUID, limit: int = 50
    ) -> list[AuditLogEntry]:
        async with self._uow_factory() as uow:
            return await uow.audit_logs.list_for_invitation(invitation_id, tenant_id, limit)

    async def get_tenant_audit_logs(
        self,
        tenant_id: UUID,
        limit: int = 100,
        offset: int = 0,
        action: str | None = None,
    ) -> list[AuditLogEntry]:
        async with self._uow_factory() as uow:
            return await uow.audit_logs.list_for_tenant(tenant_id, limit, offset, action)

    async def get_security_events(
        self,
        tenant_id: UUID | None = None,
        limit: int = 100,
        hours_back: int = 24,
    ) -> list[AuditLogEntry]:
        """Failed validations and rate-limit hits in the trailing window."""
        since = datetime.utcnow() - timedelta(hours=hours_back)
        async with self._uow_factory() as uow:
            return await uow.audit_logs.list_by_actions(
                SECURITY_ACTIONS, since, tenant_id=tenant_id, limit=limit
            )

    async def get_audit_statistics(self, tenant_id: UUID, days_back: int = 30) -> AuditStatistics:
        since = datetime.utcnow() - timedelta(days=days_back)
        async with self._uow_factory() as uow:
            entries = await uow.audit_logs.list_since(tenant_id, since)

        if not entries:
            return AuditStatistics()

        by_action = Counter(entry.action for entry in entries)
        failed = sum(1 for entry in entries if not entry.success)
        total = len(entries)
        return AuditStatistics(
            total_events=total,
            events_by_action=dict(by_action),
            security_events=sum(by_action[action] for action in SECURITY_ACTIONS),
            failed_events=failed,
            success_rate=round((total - failed) / total * 100, 2),
        )

    async def cleanup_old_audit_logs(self, retention_days: int = 365) -> int:
        """Delete entries older than the retention window. Returns deleted count."""
        cutoff = datetime.utcnow() - timedelta(days=retention_days)
        async with self._uow_factory() as uow:
            deleted = await uow.audit_logs.delete_older_than(cutoff)
            await uow.commit()

        logger.info("invitation_audit_logs_cleaned", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted
