"""Invitation management API routes (authenticated, tenant-scoped)."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status

from api.dependencies.auth import CurrentUser, request_context
from api.v1.dependencies import get_invitation_service, get_management_service
from api.v1.schemas.invitation import (
    ActivitySummaryResponse,
    BulkCreateInvitationsRequest,
    BulkInvitationIdsRequest,
    BulkResultResponse,
    CreateInvitationRequest,
    InvitationListResponse,
    InvitationReportResponse,
    InvitationResponse,
    InvitationStatisticsResponse,
)
from core.rate_limit import admin_quota, limiter, tenant_quota
from domain.entities.invitation import InvitationStatus, to_naive_utc
from domain.repositories.invitation_repository import InvitationCriteria, SortField, SortOrder
from domain.services.invitation_service import (
    DEFAULT_PAGE_SIZE,
    CreateInvitationData,
    InvitationQuery,
    InvitationService,
)
from domain.services.management_service import InvitationManagementService, ReportOptions

router = APIRouter(
    prefix="/invitations",
    tags=["invitations"],
)


def _naive(value: datetime | None) -> datetime | None:
    return to_naive_utc(value) if value else None


@router.get(
    "",
    response_model=InvitationListResponse,
    summary="List tenant invitations",
    responses={
        200: {"description": "Page of invitations"},
        401: {"description": "Not authenticated"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_invitations(
    request: Request,
    user: CurrentUser,
    status_filter: InvitationStatus | None = Query(None, alias="status"),
    email: str | None = Query(None, max_length=255),
    invited_by: UUID | None = Query(None, alias="invitedBy"),
    created_from: datetime | None = Query(None, alias="createdFrom"),
    created_to: datetime | None = Query(None, alias="createdTo"),
    expires_from: datetime | None = Query(None, alias="expiresFrom"),
    expires_to: datetime | None = Query(None, alias="expiresTo"),
    sort_by: SortField = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationListResponse:
    """List invitations in the caller's tenant with filtering, sorting and paging."""
    query = InvitationQuery(
        criteria=InvitationCriteria(
            status=status_filter,
            email_contains=email,
            invited_by=invited_by,
            created_from=_naive(created_from),
            created_to=_naive(created_to),
            expires_from=_naive(expires_from),
            expires_to=_naive(expires_to),
        ),
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result = await service.get_invitations(user.tenant_id, query)
    return InvitationListResponse.from_page(result)


@router.post(
    "",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create invitation",
    responses={
        201: {"description": "Invitation created and emailed"},
        400: {"description": "Invalid roles or expiration"},
        409: {"description": "A pending invitation already exists for this email"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
@tenant_quota  # type: ignore[untyped-decorator]
@admin_quota  # type: ignore[untyped-decorator]
async def create_invitation(
    request: Request,
    body: CreateInvitationRequest,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationResponse:
    """Invite an email into the caller's tenant."""
    invitation = await service.create_invitation(
        tenant_id=user.tenant_id,
        invited_by=user.id,
        data=CreateInvitationData(
            email=body.email,
            role_ids=body.role_ids,
            expires_at=body.expires_at,
            message=body.message,
        ),
        context=request_context(request, user),
    )
    return InvitationResponse.from_entity(invitation)


# --- Bulk ---


@router.post(
    "/bulk",
    response_model=BulkResultResponse,
    summary="Create invitations in bulk",
    responses={
        200: {"description": "Per-email outcome"},
        400: {"description": "Empty list or more than 100 emails"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
@tenant_quota  # type: ignore[untyped-decorator]
@admin_quota  # type: ignore[untyped-decorator]
async def create_bulk_invitations(
    request: Request,
    body: BulkCreateInvitationsRequest,
    user: CurrentUser,
    service: InvitationManagementService = Depends(get_management_service),
) -> BulkResultResponse:
    """Invite up to 100 emails. Failures are reported per email."""
    result = await service.create_bulk_invitations(
        tenant_id=user.tenant_id,
        actor_id=user.id,
        emails=body.emails,
        role_ids=body.role_ids,
        expires_at=body.expires_at,
        message=body.message,
        context=request_context(request, user),
    )
    return BulkResultResponse.from_result(result)


@router.post(
    "/bulk/cancel",
    response_model=BulkResultResponse,
    summary="Cancel invitations in bulk",
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def cancel_bulk_invitations(
    request: Request,
    body: BulkInvitationIdsRequest,
    user: CurrentUser,
    service: InvitationManagementService = Depends(get_management_service),
) -> BulkResultResponse:
    """Cancel up to 50 pending invitations."""
    result = await service.cancel_bulk_invitations(
        tenant_id=user.tenant_id,
        invitation_ids=body.invitation_ids,
        actor_id=user.id,
        context=request_context(request, user),
    )
    return BulkResultResponse.from_result(result)


@router.post(
    "/bulk/resend",
    response_model=BulkResultResponse,
    summary="Resend invitations in bulk",
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def resend_bulk_invitations(
    request: Request,
    body: BulkInvitationIdsRequest,
    user: CurrentUser,
    service: InvitationManagementService = Depends(get_management_service),
) -> BulkResultResponse:
    """Resend up to 50 pending invitations with fresh tokens."""
    result = await service.resend_bulk_invitations(
        tenant_id=user.tenant_id,
        invitation_ids=body.invitation_ids,
        actor_id=user.id,
        context=request_context(request, user),
    )
    return BulkResultResponse.from_result(result)


# --- Reporting ---


@router.get(
    "/statistics",
    response_model=InvitationStatisticsResponse,
    summary="Invitation statistics",
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_invitation_statistics(
    request: Request,
    user: CurrentUser,
    service: InvitationManagementService = Depends(get_management_service),
) -> InvitationStatisticsResponse:
    """Status counts, acceptance rates, top inviters and expiration risk."""
    stats = await service.get_invitation_statistics(user.tenant_id)
    return InvitationStatisticsResponse.from_statistics(stats)


@router.get(
    "/activity-summary",
    response_model=ActivitySummaryResponse,
    summary="Invitation activity summary",
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_activity_summary(
    request: Request,
    user: CurrentUser,
    service: InvitationManagementService = Depends(get_management_service),
) -> ActivitySummaryResponse:
    """Today's activity, a 7-day trend and invitations needing attention."""
    summary = await service.get_invitation_activity_summary(user.tenant_id)
    return ActivitySummaryResponse.from_summary(summary)


def get_report_options(
    status_filter: InvitationStatus | None = Query(None, alias="status"),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    include_expired: bool = Query(False, alias="includeExpired"),
) -> ReportOptions:
    """Report filters from the query string."""
    return ReportOptions(
        status=status_filter,
        start_date=_naive(start_date),
        end_date=_naive(end_date),
        include_expired=include_expired,
    )


@router.get(
    "/report",
    response_model=InvitationReportResponse,
    summary="Invitation report",
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_invitation_report(
    request: Request,
    user: CurrentUser,
    options: ReportOptions = Depends(get_report_options),
    service: InvitationManagementService = Depends(get_management_service),
) -> InvitationReportResponse:
    """Flat invitation records with a status summary."""
    report = await service.generate_invitation_report(user.tenant_id, options)
    return InvitationReportResponse.from_report(report)


@router.get(
    "/export/csv",
    summary="Export invitation report as CSV",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def export_invitations_csv(
    request: Request,
    user: CurrentUser,
    options: ReportOptions = Depends(get_report_options),
    service: InvitationManagementService = Depends(get_management_service),
) -> Response:
    """Download the invitation report as a CSV file."""
    content = await service.export_invitation_report_as_csv(
        user.tenant_id, options, actor_id=user.id
    )
    filename = f"invitations-{datetime.utcnow().date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- Single invitation ---


@router.get(
    "/{invitation_id}",
    response_model=InvitationResponse,
    summary="Get invitation",
    responses={404: {"description": "Invitation not found"}},
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_invitation(
    request: Request,
    invitation_id: UUID,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationResponse:
    """Get one invitation in the caller's tenant."""
    invitation = await service.get_invitation(invitation_id, user.tenant_id)
    return InvitationResponse.from_entity(invitation)


@router.post(
    "/{invitation_id}/resend",
    response_model=InvitationResponse,
    summary="Resend invitation",
    responses={
        200: {"description": "New token issued and emailed"},
        400: {"description": "Invitation is not pending"},
        404: {"description": "Invitation not found"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def resend_invitation(
    request: Request,
    invitation_id: UUID,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationResponse:
    """Issue a fresh token and a new 7-day expiry for a pending invitation."""
    invitation = await service.resend_invitation(
        invitation_id,
        user.tenant_id,
        actor_id=user.id,
        context=request_context(request, user),
    )
    return InvitationResponse.from_entity(invitation)


@router.delete(
    "/{invitation_id}",
    response_model=InvitationResponse,
    summary="Cancel invitation",
    responses={
        200: {"description": "Invitation cancelled"},
        400: {"description": "Invitation is not pending"},
        404: {"description": "Invitation not found"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def cancel_invitation(
    request: Request,
    invitation_id: UUID,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationResponse:
    """Cancel a pending invitation."""
    invitation = await service.cancel_invitation(
        invitation_id,
        user.tenant_id,
        actor_id=user.id,
        context=request_context(request, user),
    )
    return InvitationResponse.from_entity(invitation)
