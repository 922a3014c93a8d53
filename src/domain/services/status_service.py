"""Invitation expiry sweeps and retention cleanup."""

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

import structlog

from core.best_effort import best_effort
from domain.entities.audit import AuditActions
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.audit_service import InvitationAuditService
from domain.services.notification_service import InvitationNotificationService

logger = structlog.get_logger()


@dataclass
class CleanupStatistics:
    eligible_for_cleanup: int
    retention_days: int
    last_cleanup_run: datetime | None = None


class InvitationStatusService:
    """System jobs that move invitations through time-driven transitions."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        audit_service: InvitationAuditService,
        notification_service: InvitationNotificationService | None = None,
        retention_days: int = 90,
    ) -> None:
        self._uow_factory = uow_factory
        self._audit = audit_service
        self._notification = notification_service
        self._retention_days = retention_days

    async def expire_pending_invitations(self) -> int:
        """Flip every lapsed PENDING invitation to EXPIRED. Returns the number flipped."""
        now = datetime.utcnow()

        async with self._uow_factory() as uow:
            candidates = await uow.invitations.find_expired_pending(now)
            expired = [
                invitation
                for invitation in candidates
                if await uow.invitations.mark_expired_if_pending(invitation.id, now)
            ]
            await uow.commit()

        for invitation in expired:
            await self._audit.log_invitation_expired(
                invitation_id=invitation.id,
                tenant_id=invitation.tenant_id,
                metadata={
                    "status_change": "PENDING -> EXPIRED",
                    "expired_at": invitation.expires_at.isoformat(),
                    "checked_at": now.isoformat(),
                },
            )
            if self._notification:
                invitation.expire(now)
                await best_effort(
                    "send_invitation_status_notification",
                    self._notification.send_invitation_status_notification(invitation, "expired"),
                    invitation_id=str(invitation.id),
                )

        if expired:
            logger.info("invitations_expired", count=len(expired))
        return len(expired)

    async def cleanup_old_invitations(self) -> int:
        """Delete terminal invitations past the retention window.

        ACCEPTED and CANCELLED age from their transition time, EXPIRED from
        creation. Role rows and audit entries of deleted invitations go too.
        """
        cutoff = datetime.utcnow() - timedelta(days=self._retention_days)

        async with self._uow_factory() as uow:
            candidates = await uow.invitations.find_cleanup_candidates(
                accepted_before=cutoff,
                expired_created_before=cutoff,
                cancelled_before=cutoff,
            )
            if not candidates:
                return 0

            ids = [invitation.id for invitation in candidates]
            await uow.audit_logs.delete_for_invitations(ids)
            deleted = await uow.invitations.delete_many(ids)
            await uow.commit()

        by_status = Counter(invitation.status.value for invitation in candidates)
        logger.info("invitations_cleaned_up", deleted=deleted, by_status=dict(by_status))
        await self._audit.log_invitation_cleanup(
            metadata={
                "cleanup_reason": "retention_policy",
                "retention_days": self._retention_days,
                "deleted": deleted,
                "by_status": dict(by_status),
                "tenant_ids": sorted({str(invitation.tenant_id) for invitation in candidates}),
            },
        )
        return deleted

    async def check_invitation_expiration(self, invitation_id: UUID, tenant_id: UUID) -> bool:
        """Expire one invitation now if it has lapsed. True when it was flipped."""
        now = datetime.utcnow()

        async with self._uow_factory() as uow:
            invitation = await uow.invitations.get_for_tenant(invitation_id, tenant_id)
            if not invitation or not invitation.is_pending or invitation.expires_at > now:
                return False
            flipped = await uow.invitations.mark_expired_if_pending(invitation_id, now)
            await uow.commit()

        if flipped:
            await self._audit.log_invitation_expired(
                invitation_id=invitation_id,
                tenant_id=tenant_id,
                metadata={"status_change": "PENDING -> EXPIRED", "checked_at": now.isoformat()},
            )
        return flipped

    async def get_cleanup_statistics(self) -> CleanupStatistics:
        cutoff = datetime.utcnow() - timedelta(days=self._retention_days)

        async with self._uow_factory() as uow:
            candidates = await uow.invitations.find_cleanup_candidates(
                accepted_before=cutoff,
                expired_created_before=cutoff,
                cancelled_before=cutoff,
            )
            last_runs = await uow.audit_logs.list_by_actions(
                (AuditActions.CLEANUP,), since=datetime.min, limit=1
            )

        return CleanupStatistics(
            eligible_for_cleanup=len(candidates),
            retention_days=self._retention_days,
            last_cleanup_run=last_runs[0].created_at if last_runs else None,
        )
