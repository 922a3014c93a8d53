"""Bulk operations, statistics and reporting over a tenant's invitations."""

import csv
import io
import re
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

import structlog

from core.exceptions import AppException, BulkLimitError
from core.logging import error_summary
from domain.entities.audit import AuditActions, AuditLogEntry
from domain.entities.invitation import Invitation, InvitationStatus, normalize_email
from domain.repositories.invitation_repository import InvitationCriteria
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.audit_service import InvitationAuditService
from domain.services.invitation_service import CreateInvitationData, InvitationService
from domain.services.token_service import ValidationContext

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INVALID_EMAIL_MESSAGE = "Invalid email format"
UNKNOWN_EMAIL = "unknown"
UNKNOWN_LABEL = "Unknown"
TOP_INVITERS_LIMIT = 5
ROLE_DISTRIBUTION_LIMIT = 10

CSV_HEADERS = [
    "ID",
    "Email",
    "Status",
    "Created At",
    "Expires At",
    "Accepted At",
    "Cancelled At",
    "Inviter Email",
    "Roles",
]


# --- Result types ---


@dataclass
class BulkSuccess:
    email: str
    invitation_id: UUID


@dataclass
class BulkFailure:
    email: str
    error: str


@dataclass
class BulkResult:
    """Per-item outcome of a bulk operation."""

    total: int
    successful: list[BulkSuccess] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "successful": len(self.successful),
            "failed": len(self.failed),
        }


@dataclass
class StatusCounts:
    total: int = 0
    pending: int = 0
    accepted: int = 0
    expired: int = 0
    cancelled: int = 0

    @classmethod
    def from_counts(cls, counts: dict[InvitationStatus, int]) -> "StatusCounts":
        return cls(
            total=sum(counts.values()),
            pending=counts.get(InvitationStatus.PENDING, 0),
            accepted=counts.get(InvitationStatus.ACCEPTED, 0),
            expired=counts.get(InvitationStatus.EXPIRED, 0),
            cancelled=counts.get(InvitationStatus.CANCELLED, 0),
        )


@dataclass
class InviterCount:
    inviter_email: str
    invitation_count: int


@dataclass
class RoleCount:
    role_name: str
    count: int


@dataclass
class InvitationStatistics:
    overview: StatusCounts
    last_24_hours: int
    last_7_days: int
    last_30_days: int
    acceptance_rate_overall: float
    acceptance_rate_last_30_days: float
    top_inviters: list[InviterCount]
    role_distribution: list[RoleCount]
    expiring_soon: int
    expired_recently: int


@dataclass
class ReportOptions:
    status: InvitationStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    include_expired: bool = True


@dataclass
class ReportRow:
    """Flat projection of one invitation for reports and CSV export."""

    id: UUID
    email: str
    status: str
    created_at: datetime
    expires_at: datetime
    accepted_at: datetime | None
    cancelled_at: datetime | None
    inviter_email: str
    roles: list[str]

    @classmethod
    def from_invitation(cls, invitation: Invitation) -> "ReportRow":
        return cls(
            id=invitation.id,
            email=invitation.email,
            status=invitation.status.value,
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
            accepted_at=invitation.accepted_at,
            cancelled_at=invitation.cancelled_at,
            inviter_email=invitation.inviter.email if invitation.inviter else UNKNOWN_LABEL,
            roles=[role.name for role in invitation.roles],
        )


@dataclass
class InvitationReport:
    tenant_id: UUID
    generated_at: datetime
    summary: StatusCounts
    invitations: list[ReportRow]


@dataclass
class DailyTrend:
    date: str
    created: int
    accepted: int


@dataclass
class ActivitySummary:
    today_created: int
    today_accepted: int
    today_expired: int
    weekly_trend: list[DailyTrend]
    expiring_soon: int
    needing_resend: int


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def _format_datetime(value: datetime | None) -> str:
    return value.isoformat() if value else ""


class InvitationManagementService:
    """Bulk and reporting utilities built on the lifecycle service.

    Bulk operations never abort on a single item. Each item's outcome is
    captured and one aggregate audit entry is written per batch.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        invitation_service: InvitationService,
        audit_service: InvitationAuditService,
        bulk_create_max: int = 100,
        bulk_update_max: int = 50,
    ) -> None:
        self._uow_factory = uow_factory
        self._invitations = invitation_service
        self._audit = audit_service
        self._bulk_create_max = bulk_create_max
        self._bulk_update_max = bulk_update_max

    # --- Bulk ---

    async def create_bulk_invitations(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        emails: list[str],
        role_ids: list[UUID],
        expires_at: datetime | None = None,
        message: str | None = None,
        context: ValidationContext | None = None,
    ) -> BulkResult:
        """Create an invitation per unique email.

        Raises:
            BulkLimitError: If the list is empty or over the batch cap.
        """
        if not emails:
            raise BulkLimitError("Email list cannot be empty")
        if len(emails) > self._bulk_create_max:
            raise BulkLimitError(
                f"Cannot create more than {self._bulk_create_max} invitations at once"
            )

        unique_emails = list(dict.fromkeys(normalize_email(email) for email in emails))
        result = BulkResult(total=len(emails))

        for email in unique_emails:
            if not is_valid_email(email):
                result.failed.append(BulkFailure(email=email, error=INVALID_EMAIL_MESSAGE))
                continue
            try:
                invitation = await self._invitations.create_invitation(
                    tenant_id,
                    actor_id,
                    CreateInvitationData(
                        email=email,
                        role_ids=role_ids,
                        expires_at=expires_at,
                        message=message,
                    ),
                    context,
                )
                result.successful.append(BulkSuccess(email=email, invitation_id=invitation.id))
            except Exception as exc:
                result.failed.append(BulkFailure(email=email, error=self._error_message(exc)))

        logger.info(
            "bulk_invitations_created",
            tenant_id=str(tenant_id),
            **result.summary,
        )
        await self._audit.log_invitation_created(
            invitation_id=None,
            tenant_id=tenant_id,
            user_id=actor_id,
            metadata={"bulk_operation": True, "unique_emails": len(unique_emails), **result.summary},
        )
        return result

    async def cancel_bulk_invitations(
        self,
        tenant_id: UUID,
        invitation_ids: list[UUID],
        actor_id: UUID,
        context: ValidationContext | None = None,
    ) -> BulkResult:
        """Cancel each invitation independently.

        Raises:
            BulkLimitError: If the list is empty or over the batch cap.
        """
        self._check_bulk_ids(invitation_ids, "cancel")
        result = await self._apply_each(
            tenant_id,
            invitation_ids,
            lambda invitation_id: self._invitations.cancel_invitation(
                invitation_id, tenant_id, actor_id, context
            ),
        )
        logger.info("bulk_invitations_cancelled", tenant_id=str(tenant_id), **result.summary)
        await self._audit.log_invitation_cancelled(
            invitation_id=None,
            tenant_id=tenant_id,
            user_id=actor_id,
            metadata={"bulk_operation": True, **result.summary},
        )
        return result

    async def resend_bulk_invitations(
        self,
        tenant_id: UUID,
        invitation_ids: list[UUID],
        actor_id: UUID,
        context: ValidationContext | None = None,
    ) -> BulkResult:
        """Resend each invitation independently.

        Raises:
            BulkLimitError: If the list is empty or over the batch cap.
        """
        self._check_bulk_ids(invitation_ids, "resend")
        result = await self._apply_each(
            tenant_id,
            invitation_ids,
            lambda invitation_id: self._invitations.resend_invitation(
                invitation_id, tenant_id, actor_id, context
            ),
        )
        logger.info("bulk_invitations_resent", tenant_id=str(tenant_id), **result.summary)
        await self._audit.log_invitation_resent(
            invitation_id=None,
            tenant_id=tenant_id,
            user_id=actor_id,
            metadata={"bulk_operation": True, **result.summary},
        )
        return result

    # --- Reporting ---

    async def get_invitation_statistics(self, tenant_id: UUID) -> InvitationStatistics:
        now = datetime.utcnow()
        day_ago = now - timedelta(hours=24)
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)

        async with self._uow_factory() as uow:
            repo = uow.invitations
            overview = StatusCounts.from_counts(await repo.count_by_status(tenant_id))
            last_24_hours = await repo.count(tenant_id, InvitationCriteria(created_from=day_ago))
            last_7_days = await repo.count(tenant_id, InvitationCriteria(created_from=week_ago))
            last_30_days = await repo.count(tenant_id, InvitationCriteria(created_from=month_ago))
            accepted_last_30_days = await repo.count(
                tenant_id,
                InvitationCriteria(status=InvitationStatus.ACCEPTED, accepted_from=month_ago),
            )
            inviters = await repo.top_inviters(tenant_id, TOP_INVITERS_LIMIT)
            roles = await repo.role_distribution(tenant_id, ROLE_DISTRIBUTION_LIMIT)
            expiring_soon = await repo.count(
                tenant_id,
                InvitationCriteria(
                    status=InvitationStatus.PENDING,
                    expires_from=now,
                    expires_to=now + timedelta(hours=24),
                ),
            )
            expired_recently = await repo.count(
                tenant_id,
                InvitationCriteria(status=InvitationStatus.EXPIRED, expires_from=week_ago),
            )

        return InvitationStatistics(
            overview=overview,
            last_24_hours=last_24_hours,
            last_7_days=last_7_days,
            last_30_days=last_30_days,
            acceptance_rate_overall=self._rate(overview.accepted, overview.total),
            acceptance_rate_last_30_days=self._rate(accepted_last_30_days, last_30_days),
            top_inviters=[
                InviterCount(inviter_email=row.label or UNKNOWN_LABEL, invitation_count=row.count)
                for row in inviters
            ],
            role_distribution=[
                RoleCount(role_name=row.label or UNKNOWN_LABEL, count=row.count) for row in roles
            ],
            expiring_soon=expiring_soon,
            expired_recently=expired_recently,
        )

    async def generate_invitation_report(
        self, tenant_id: UUID, options: ReportOptions | None = None
    ) -> InvitationReport:
        """Project matching invitations into flat rows, newest first."""
        options = options or ReportOptions()
        criteria = InvitationCriteria(
            status=options.status,
            created_from=options.start_date,
            created_to=options.end_date,
            exclude_expired=not options.include_expired,
        )

        async with self._uow_factory() as uow:
            invitations = await uow.invitations.list_all_for_tenant(tenant_id, criteria)

        counts = Counter(invitation.status for invitation in invitations)
        logger.info("invitation_report_generated", tenant_id=str(tenant_id), rows=len(invitations))
        return InvitationReport(
            tenant_id=tenant_id,
            generated_at=datetime.utcnow(),
            summary=StatusCounts.from_counts(dict(counts)),
            invitations=[ReportRow.from_invitation(invitation) for invitation in invitations],
        )

    async def export_invitation_report_as_csv(
        self,
        tenant_id: UUID,
        options: ReportOptions | None = None,
        actor_id: UUID | None = None,
    ) -> str:
        """Render the report as CSV with every field quoted."""
        options = options or ReportOptions()
        report = await self.generate_invitation_report(tenant_id, options)

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for row in report.invitations:
            writer.writerow(
                [
                    str(row.id),
                    row.email,
                    row.status,
                    _format_datetime(row.created_at),
                    _format_datetime(row.expires_at),
                    _format_datetime(row.accepted_at),
                    _format_datetime(row.cancelled_at),
                    row.inviter_email,
                    "; ".join(row.roles),
                ]
            )

        await self._audit.log_event(
            AuditLogEntry(
                action=AuditActions.EXPORTED,
                tenant_id=tenant_id,
                user_id=actor_id,
                metadata={
                    "export_type": "csv",
                    "record_count": len(report.invitations),
                    "status": options.status.value if options.status else None,
                    "include_expired": options.include_expired,
                    "generated_at": report.generated_at.isoformat(),
                },
            )
        )
        return buffer.getvalue()

    async def get_invitation_activity_summary(self, tenant_id: UUID) -> ActivitySummary:
        now = datetime.utcnow()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        one_day = timedelta(days=1)
        just_before = timedelta(microseconds=1)

        async with self._uow_factory() as uow:
            repo = uow.invitations
            today_created = await repo.count(tenant_id, InvitationCriteria(created_from=today_start))
            today_accepted = await repo.count(
                tenant_id,
                InvitationCriteria(status=InvitationStatus.ACCEPTED, accepted_from=today_start),
            )
            today_expired = await repo.count(
                tenant_id,
                InvitationCriteria(
                    status=InvitationStatus.EXPIRED, expires_from=today_start, expires_to=now
                ),
            )

            weekly_trend = []
            for days_back in range(6, -1, -1):
                day_start = today_start - days_back * one_day
                day_end = day_start + one_day - just_before
                created = await repo.count(
                    tenant_id, InvitationCriteria(created_from=day_start, created_to=day_end)
                )
                accepted = await repo.count(
                    tenant_id,
                    InvitationCriteria(
                        status=InvitationStatus.ACCEPTED,
                        accepted_from=day_start,
                        accepted_to=day_end,
                    ),
                )
                weekly_trend.append(
                    DailyTrend(date=day_start.date().isoformat(), created=created, accepted=accepted)
                )

            expiring_soon = await repo.count(
                tenant_id,
                InvitationCriteria(
                    status=InvitationStatus.PENDING,
                    expires_from=now,
                    expires_to=now + timedelta(hours=24),
                ),
            )
            needing_resend = await repo.count(
                tenant_id,
                InvitationCriteria(
                    status=InvitationStatus.PENDING, created_to=now - timedelta(days=7)
                ),
            )

        return ActivitySummary(
            today_created=today_created,
            today_accepted=today_accepted,
            today_expired=today_expired,
            weekly_trend=weekly_trend,
            expiring_soon=expiring_soon,
            needing_resend=needing_resend,
        )

    # --- Helpers ---

    def _check_bulk_ids(self, invitation_ids: list[UUID], operation: str) -> None:
        if not invitation_ids:
            raise BulkLimitError("Invitation ID list cannot be empty")
        if len(invitation_ids) > self._bulk_update_max:
            raise BulkLimitError(
                f"Cannot {operation} more than {self._bulk_update_max} invitations at once"
            )

    async def _apply_each(
        self,
        tenant_id: UUID,
        invitation_ids: list[UUID],
        operation: Callable[[UUID], Awaitable[Invitation]],
    ) -> BulkResult:
        result = BulkResult(total=len(invitation_ids))
        for invitation_id in invitation_ids:
            try:
                invitation = await operation(invitation_id)
                result.successful.append(
                    BulkSuccess(email=invitation.email, invitation_id=invitation_id)
                )
            except Exception as exc:
                result.failed.append(
                    BulkFailure(
                        email=await self._email_for_display(invitation_id, tenant_id),
                        error=self._error_message(exc),
                    )
                )
        return result

    async def _email_for_display(self, invitation_id: UUID, tenant_id: UUID) -> str:
        try:
            invitation = await self._invitations.get_invitation(invitation_id, tenant_id)
        except Exception:
            return UNKNOWN_EMAIL
        return invitation.email

    @staticmethod
    def _error_message(exc: Exception) -> str:
        if isinstance(exc, AppException):
            return exc.message
        logger.error("bulk_item_failed", error=error_summary(exc), error_type=type(exc).__name__)
        return "Unknown error"

    @staticmethod
    def _rate(numerator: int, denominator: int) -> float:
        return round(numerator / denominator * 100, 2) if denominator else 0.0
