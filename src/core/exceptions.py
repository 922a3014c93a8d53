"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the API."""

    # Authentication errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"
    GOOGLE_AUTH_FAILED = "GOOGLE_AUTH_FAILED"

    # Not found errors (404)
    INVITATION_NOT_FOUND = "INVITATION_NOT_FOUND"
    TENANT_NOT_FOUND = "TENANT_NOT_FOUND"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INVITATION = "INVALID_INVITATION"
    TOKEN_VALIDATION_FAILED = "TOKEN_VALIDATION_FAILED"
    INVALID_ROLE_ASSIGNMENT = "INVALID_ROLE_ASSIGNMENT"
    INVALID_EXPIRATION = "INVALID_EXPIRATION"
    INVALID_INVITATION_STATUS = "INVALID_INVITATION_STATUS"
    INVALID_AUTH_METHOD = "INVALID_AUTH_METHOD"
    INVITATION_ACCEPTANCE_FAILED = "INVITATION_ACCEPTANCE_FAILED"
    BULK_LIMIT = "BULK_LIMIT"
    GOOGLE_SSO_DISABLED = "GOOGLE_SSO_DISABLED"
    GOOGLE_EMAIL_MISMATCH = "GOOGLE_EMAIL_MISMATCH"
    INVALID_VERIFICATION_CODE = "INVALID_VERIFICATION_CODE"

    # Conflict errors (409)
    DUPLICATE_INVITATION = "DUPLICATE_INVITATION"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=401,
        )


class GoogleAuthError(AppException):
    """The identity provider rejected the authorization code or ID token."""

    def __init__(self, message: str = "Google authentication failed") -> None:
        super().__init__(
            error_code=ErrorCode.GOOGLE_AUTH_FAILED,
            message=message,
            status_code=401,
        )


class InvitationNotFoundError(AppException):
    """Invitation not found (or outside the caller's tenant)."""

    def __init__(self, invitation_id: str = "") -> None:
        super().__init__(
            error_code=ErrorCode.INVITATION_NOT_FOUND,
            message="Invitation not found",
            status_code=404,
            details={"invitation_id": invitation_id} if invitation_id else None,
        )


class TenantNotFoundError(AppException):
    """Tenant not found."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.TENANT_NOT_FOUND,
            message="Tenant not found",
            status_code=404,
            details={"tenant_id": tenant_id},
        )


class InvalidInvitationError(AppException):
    """The invitation token did not pass validation."""

    def __init__(self, reason: str = "Invalid invitation token") -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_INVITATION,
            message=reason,
            status_code=400,
        )


class InvitationValidationFailedError(AppException):
    """Token validation could not be completed (storage or lookup failure)."""

    def __init__(self) -> None:
        super().__init__(
            error_code=ErrorCode.TOKEN_VALIDATION_FAILED,
            message="Token validation failed",
            status_code=400,
        )


class InvalidRoleAssignmentError(AppException):
    """One or more role IDs do not belong to the tenant."""

    def __init__(self, invalid_role_ids: list[str]) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_ROLE_ASSIGNMENT,
            message=f"Invalid role IDs for this tenant: {', '.join(invalid_role_ids)}",
            status_code=400,
            details={"invalid_role_ids": invalid_role_ids},
        )


class InvalidExpirationError(AppException):
    """Requested expiration is not in the future."""

    def __init__(self) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_EXPIRATION,
            message="Expiration date must be in the future",
            status_code=400,
        )


class InvalidInvitationStatusError(AppException):
    """Operation is not allowed from the invitation's current status."""

    def __init__(self, operation: str, status: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_INVITATION_STATUS,
            message=f"Cannot {operation} invitation with status: {status}",
            status_code=400,
            details={"status": status},
        )


class InvalidAuthMethodError(AppException):
    """Unsupported or incomplete authentication method payload."""

    def __init__(self, message: str = "Invalid authentication method") -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_AUTH_METHOD,
            message=message,
            status_code=400,
        )


class InvitationAcceptanceError(AppException):
    """Acceptance failed for a reason that must not be disclosed."""

    def __init__(self, message: str = "Invitation acceptance failed") -> None:
        super().__init__(
            error_code=ErrorCode.INVITATION_ACCEPTANCE_FAILED,
            message=message,
            status_code=400,
        )


class BulkLimitError(AppException):
    """Bulk request list is empty or exceeds the batch cap."""

    def __init__(self, message: str) -> None:
        super().__init__(
            error_code=ErrorCode.BULK_LIMIT,
            message=message,
            status_code=400,
        )


class GoogleSsoDisabledError(AppException):
    """Google sign-in is not enabled for the invitation's tenant."""

    def __init__(self) -> None:
        super().__init__(
            error_code=ErrorCode.GOOGLE_SSO_DISABLED,
            message="Google SSO is not enabled for this tenant",
            status_code=400,
        )


class GoogleEmailMismatchError(AppException):
    """The Google account does not belong to the invited email."""

    def __init__(self) -> None:
        super().__init__(
            error_code=ErrorCode.GOOGLE_EMAIL_MISMATCH,
            message="Google account email must match the invitation email",
            status_code=400,
        )


class DuplicateInvitationError(AppException):
    """A pending invitation already exists for this email and tenant."""

    def __init__(self, email: str = "") -> None:
        super().__init__(
            error_code=ErrorCode.DUPLICATE_INVITATION,
            message="A pending invitation already exists for this email address",
            status_code=409,
            details={"email": email} if email else None,
        )


class UserAlreadyExistsError(AppException):
    """A user with the invited email already exists in the tenant."""

    def __init__(self, email: str) -> None:
        super().__init__(
            error_code=ErrorCode.USER_ALREADY_EXISTS,
            message="User with this email already exists in the tenant",
            status_code=409,
            details={"email": email},
        )


class InvitationRateLimitError(AppException):
    """Too many invitations were created for one email address."""

    def __init__(self, limit: int, window_hours: int) -> None:
        super().__init__(
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message="Too many invitations for this email address. Try again later",
            status_code=429,
            details={"limit": limit, "window_hours": window_hours},
        )


class InvalidVerificationCodeError(AppException):
    """The email verification code is wrong, expired or already used."""

    def __init__(self) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_VERIFICATION_CODE,
            message="Invalid or expired verification code",
            status_code=400,
        )
