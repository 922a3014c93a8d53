"""Pydantic schemas for Invitation API."""

from datetime import datetime
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator

from api.v1.schemas.common import CamelModel
from domain.entities.invitation import Invitation
from domain.services.invitation_service import InvitationPage
from domain.services.management_service import (
    ActivitySummary,
    BulkResult,
    InvitationReport,
    InvitationStatistics,
)


class CreateInvitationRequest(CamelModel):
    """Schema for inviting one email into the caller's tenant."""

    email: str = Field(..., min_length=3, max_length=255)
    role_ids: list[UUID] = Field(default_factory=list)
    expires_at: datetime | None = None
    message: str | None = Field(None, max_length=2000)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Basic email validation."""
        v = v.strip().lower()
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Invalid email address")
        return v


class BulkCreateInvitationsRequest(CamelModel):
    """Schema for inviting many emails with the same roles.

    Email shape is checked per item by the service so one bad address does
    not reject the batch.
    """

    emails: list[str]
    role_ids: list[UUID] = Field(default_factory=list)
    expires_at: datetime | None = None
    message: str | None = Field(None, max_length=2000)


class BulkInvitationIdsRequest(CamelModel):
    """Schema for bulk cancel and bulk resend."""

    invitation_ids: list[UUID]


class RoleResponse(CamelModel):
    id: UUID
    name: str


class TenantResponse(CamelModel):
    id: UUID
    name: str
    subdomain: str | None = None


class InviterResponse(CamelModel):
    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None


class InvitationResponse(CamelModel):
    """Schema for Invitation response. The token is never returned."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "tenantId": "456e4567-e89b-12d3-a456-426614174000",
                "email": "user@example.com",
                "status": "PENDING",
                "invitedBy": "789e4567-e89b-12d3-a456-426614174000",
                "expiresAt": "2026-02-08T10:00:00",
                "createdAt": "2026-02-01T10:00:00",
                "roles": [{"id": "a1e4567-e89b-12d3-a456-426614174000", "name": "Member"}],
            }
        },
    )

    id: UUID
    tenant_id: UUID
    email: str
    status: str
    message: str | None = None
    invited_by: UUID
    expires_at: datetime
    accepted_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    tenant: TenantResponse | None = None
    inviter: InviterResponse | None = None
    roles: list[RoleResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, invitation: Invitation) -> "InvitationResponse":
        return cls(
            id=invitation.id,
            tenant_id=invitation.tenant_id,
            email=invitation.email,
            status=invitation.status.value,
            message=invitation.message,
            invited_by=invitation.invited_by,
            expires_at=invitation.expires_at,
            accepted_at=invitation.accepted_at,
            cancelled_at=invitation.cancelled_at,
            created_at=invitation.created_at,
            updated_at=invitation.updated_at,
            tenant=TenantResponse.model_validate(invitation.tenant) if invitation.tenant else None,
            inviter=InviterResponse.model_validate(invitation.inviter)
            if invitation.inviter
            else None,
            roles=[RoleResponse.model_validate(role) for role in invitation.roles],
        )


class InvitationListResponse(CamelModel):
    """Schema for a page of invitations."""

    invitations: list[InvitationResponse]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def from_page(cls, page: InvitationPage) -> "InvitationListResponse":
        return cls(
            invitations=[InvitationResponse.from_entity(inv) for inv in page.invitations],
            total=page.total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
        )


# --- Bulk ---


class BulkSuccessResponse(CamelModel):
    email: str
    invitation_id: UUID


class BulkFailureResponse(CamelModel):
    email: str
    error: str


class BulkSummaryResponse(CamelModel):
    total: int
    successful: int
    failed: int


class BulkResultResponse(CamelModel):
    """Per-item outcome of a bulk operation."""

    summary: BulkSummaryResponse
    successful: list[BulkSuccessResponse]
    failed: list[BulkFailureResponse]

    @classmethod
    def from_result(cls, result: BulkResult) -> "BulkResultResponse":
        return cls(
            summary=BulkSummaryResponse(**result.summary),
            successful=[BulkSuccessResponse.model_validate(item) for item in result.successful],
            failed=[BulkFailureResponse.model_validate(item) for item in result.failed],
        )


# --- Reporting ---


class StatusCountsResponse(CamelModel):
    total: int
    pending: int
    accepted: int
    expired: int
    cancelled: int


class RecentActivityResponse(CamelModel):
    last_24_hours: int
    last_7_days: int
    last_30_days: int


class AcceptanceRateResponse(CamelModel):
    overall: float
    last_30_days: float


class InviterCountResponse(CamelModel):
    inviter_email: str
    invitation_count: int


class RoleCountResponse(CamelModel):
    role_name: str
    count: int


class ExpirationResponse(CamelModel):
    expiring_soon: int
    expired_recently: int


class InvitationStatisticsResponse(CamelModel):
    overview: StatusCountsResponse
    recent_activity: RecentActivityResponse
    acceptance_rate: AcceptanceRateResponse
    top_inviters: list[InviterCountResponse]
    role_distribution: list[RoleCountResponse]
    expiration: ExpirationResponse

    @classmethod
    def from_statistics(cls, stats: InvitationStatistics) -> "InvitationStatisticsResponse":
        return cls(
            overview=StatusCountsResponse.model_validate(stats.overview),
            recent_activity=RecentActivityResponse(
                last_24_hours=stats.last_24_hours,
                last_7_days=stats.last_7_days,
                last_30_days=stats.last_30_days,
            ),
            acceptance_rate=AcceptanceRateResponse(
                overall=stats.acceptance_rate_overall,
                last_30_days=stats.acceptance_rate_last_30_days,
            ),
            top_inviters=[InviterCountResponse.model_validate(i) for i in stats.top_inviters],
            role_distribution=[RoleCountResponse.model_validate(r) for r in stats.role_distribution],
            expiration=ExpirationResponse(
                expiring_soon=stats.expiring_soon,
                expired_recently=stats.expired_recently,
            ),
        )


class DailyTrendResponse(CamelModel):
    date: str
    created: int
    accepted: int


class TodayActivityResponse(CamelModel):
    created: int
    accepted: int
    expired: int


class NeedsAttentionResponse(CamelModel):
    expiring_soon: int
    needing_resend: int


class ActivitySummaryResponse(CamelModel):
    today: TodayActivityResponse
    weekly_trend: list[DailyTrendResponse]
    needs_attention: NeedsAttentionResponse

    @classmethod
    def from_summary(cls, summary: ActivitySummary) -> "ActivitySummaryResponse":
        return cls(
            today=TodayActivityResponse(
                created=summary.today_created,
                accepted=summary.today_accepted,
                expired=summary.today_expired,
            ),
            weekly_trend=[DailyTrendResponse.model_validate(day) for day in summary.weekly_trend],
            needs_attention=NeedsAttentionResponse(
                expiring_soon=summary.expiring_soon,
                needing_resend=summary.needing_resend,
            ),
        )


class ReportRowResponse(CamelModel):
    id: UUID
    email: str
    status: str
    created_at: datetime
    expires_at: datetime
    accepted_at: datetime | None = None
    cancelled_at: datetime | None = None
    inviter_email: str
    roles: list[str]


class InvitationReportResponse(CamelModel):
    tenant_id: UUID
    generated_at: datetime
    summary: StatusCountsResponse
    invitations: list[ReportRowResponse]

    @classmethod
    def from_report(cls, report: InvitationReport) -> "InvitationReportResponse":
        return cls(
            tenant_id=report.tenant_id,
            generated_at=report.generated_at,
            summary=StatusCountsResponse.model_validate(report.summary),
            invitations=[ReportRowResponse.model_validate(row) for row in report.invitations],
        )
