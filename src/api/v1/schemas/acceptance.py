"""Pydantic schemas for the public invitation acceptance API."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from api.v1.schemas.common import CamelModel
from api.v1.schemas.invitation import RoleResponse, TenantResponse
from domain.services.acceptance_service import AcceptanceResult
from domain.services.token_service import ValidationResult


class InvitationPreviewResponse(CamelModel):
    """What an invitee sees before accepting."""

    id: UUID
    email: str
    expires_at: datetime
    tenant: TenantResponse | None = None
    roles: list[RoleResponse] = Field(default_factory=list)
    message: str | None = None


class ValidateInvitationResponse(CamelModel):
    is_valid: bool
    status: str
    invitation: InvitationPreviewResponse | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidateInvitationResponse":
        invitation = result.invitation
        preview = None
        if invitation is not None:
            preview = InvitationPreviewResponse(
                id=invitation.id,
                email=invitation.email,
                expires_at=invitation.expires_at,
                tenant=TenantResponse.model_validate(invitation.tenant)
                if invitation.tenant
                else None,
                roles=[RoleResponse.model_validate(role) for role in invitation.roles],
                message=invitation.message,
            )
        return cls(
            is_valid=result.is_valid,
            status=result.status,
            invitation=preview,
            error=result.reason,
        )


class GoogleAuthUrlResponse(CamelModel):
    auth_url: str
    state: str


class AcceptInvitationRequest(CamelModel):
    """Acceptance payload. ``authMethod`` is ``password`` or ``google``."""

    auth_method: str = Field(..., min_length=1, max_length=20)
    password: str | None = Field(None, max_length=128)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    google_code: str | None = None
    state: str | None = None


class AcceptedUserResponse(CamelModel):
    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    email_verified: bool
    auth_methods: list[str]


class AcceptInvitationResponse(CamelModel):
    message: str
    user: AcceptedUserResponse
    tenant: TenantResponse
    roles: list[RoleResponse]
    access_token: str
    verification_required: bool | None = None

    @classmethod
    def from_result(cls, result: AcceptanceResult) -> "AcceptInvitationResponse":
        return cls(
            message=result.message,
            user=AcceptedUserResponse.model_validate(result.user),
            tenant=TenantResponse.model_validate(result.tenant),
            roles=[RoleResponse.model_validate(role) for role in result.roles],
            access_token=result.access_token,
            verification_required=result.verification_required,
        )


class VerifyEmailRequest(CamelModel):
    """The six-digit code emailed after a password sign-up."""

    code: str = Field(..., pattern=r"^\d{6}$")


class VerifyEmailResponse(CamelModel):
    message: str
    email_verified: bool
