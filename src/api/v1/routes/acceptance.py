"""Public invitation acceptance routes.

The invitation endpoints are unauthenticated: the invitation token is the
credential. Tokens are only ever logged truncated. Email verification uses the
session token issued on acceptance.
"""

import structlog
from fastapi import APIRouter, Depends, Request

from api.dependencies.auth import CurrentUser, request_context
from api.v1.dependencies import (
    get_acceptance_service,
    get_validation_service,
    get_verification_service,
)
from api.v1.schemas.acceptance import (
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    GoogleAuthUrlResponse,
    ValidateInvitationResponse,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from core.exceptions import (
    AppException,
    InvalidVerificationCodeError,
    InvitationAcceptanceError,
)
from core.logging import error_summary, truncate_token
from core.rate_limit import acceptance_ip_quota, limiter, user_rate_limit_key
from domain.services.acceptance_service import AcceptInvitationData, InvitationAcceptanceService
from domain.services.token_service import InvitationValidationService
from domain.services.verification_service import EmailVerificationService

logger = structlog.get_logger()

router = APIRouter(
    prefix="/invitation-acceptance",
    tags=["invitation-acceptance"],
)


@router.get(
    "/{token}",
    response_model=ValidateInvitationResponse,
    summary="Validate invitation token",
    responses={
        200: {"description": "Validation result, valid or not"},
        400: {"description": "Token validation failed"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
@acceptance_ip_quota  # type: ignore[untyped-decorator]
async def validate_invitation(
    request: Request,
    token: str,
    service: InvitationValidationService = Depends(get_validation_service),
) -> ValidateInvitationResponse:
    """Check whether an invitation token can be accepted."""
    logger.info("invitation_validation_requested", token=truncate_token(token))
    result = await service.validate_token(token, request_context(request))
    return ValidateInvitationResponse.from_result(result)


@router.get(
    "/{token}/google-auth",
    response_model=GoogleAuthUrlResponse,
    summary="Get Google sign-in URL",
    responses={
        200: {"description": "Consent URL and signed state"},
        400: {"description": "Invalid token or Google SSO disabled for the tenant"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
@acceptance_ip_quota  # type: ignore[untyped-decorator]
async def get_google_auth_url(
    request: Request,
    token: str,
    service: InvitationAcceptanceService = Depends(get_acceptance_service),
) -> GoogleAuthUrlResponse:
    """Start Google sign-in for an invitation."""
    result = await service.get_google_auth_url(token, request_context(request))
    return GoogleAuthUrlResponse(auth_url=result.auth_url, state=result.state)


@router.post(
    "/{token}/accept",
    response_model=AcceptInvitationResponse,
    summary="Accept invitation",
    responses={
        200: {"description": "Account created and session issued"},
        400: {"description": "Invalid token or acceptance payload"},
        401: {"description": "Google rejected the authorization code"},
        404: {"description": "Tenant not found"},
        409: {"description": "User already exists in the tenant"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
@acceptance_ip_quota  # type: ignore[untyped-decorator]
async def accept_invitation(
    request: Request,
    token: str,
    body: AcceptInvitationRequest,
    service: InvitationAcceptanceService = Depends(get_acceptance_service),
) -> AcceptInvitationResponse:
    """Accept an invitation with a password or a Google account."""
    logger.info(
        "invitation_acceptance_requested",
        token=truncate_token(token),
        auth_method=body.auth_method,
    )
    try:
        result = await service.accept(
            token,
            AcceptInvitationData(
                auth_method=body.auth_method,
                password=body.password,
                first_name=body.first_name,
                last_name=body.last_name,
                google_code=body.google_code,
                state=body.state,
            ),
            request_context(request),
        )
    except AppException:
        raise
    except Exception as e:
        logger.error(
            "invitation_acceptance_failed",
            token=truncate_token(token),
            error=error_summary(e),
            error_type=type(e).__name__,
        )
        raise InvitationAcceptanceError() from e

    return AcceptInvitationResponse.from_result(result)


@router.post(
    "/verify-email",
    response_model=VerifyEmailResponse,
    summary="Verify email address",
    responses={
        200: {"description": "Email address verified"},
        400: {"description": "Wrong, expired or already used code"},
        401: {"description": "Missing or invalid session token"},
    },
)
@limiter.limit("5/minute", key_func=user_rate_limit_key)  # type: ignore[untyped-decorator]
async def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    user: CurrentUser,
    service: EmailVerificationService = Depends(get_verification_service),
) -> VerifyEmailResponse:
    """Confirm the code emailed to a user who joined with a password."""
    if not await service.verify_code(user.id, user.tenant_id, body.code):
        raise InvalidVerificationCodeError()
    return VerifyEmailResponse(message="Email verified successfully", email_verified=True)
