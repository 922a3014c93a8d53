"""Invitation token generation and validation."""

import hashlib
import hmac
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

import structlog

from core.exceptions import InvitationValidationFailedError
from core.logging import error_summary, truncate_token
from domain.entities.invitation import (
    Accepted,
    Cancelled,
    Expired,
    Invitation,
    Pending,
    is_expired,
)
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.audit_service import InvitationAuditService

logger = structlog.get_logger()

TOKEN_BYTES = 32
TOKEN_LENGTH = TOKEN_BYTES * 2
_TOKEN_PATTERN = re.compile(r"[a-f0-9]+", re.IGNORECASE)

REASON_INVALID_FORMAT = "Invalid token format"
REASON_NOT_FOUND = "Token not found"
REASON_ALREADY_ACCEPTED = "Invitation has already been accepted"
REASON_CANCELLED = "Invitation has been cancelled"
REASON_EXPIRED = "Invitation has expired"
REASON_INVALID_STATUS = "Invalid invitation status"
REASON_VALIDATION_FAILED = "Token validation failed"


def generate_token() -> str:
    """Return 256 bits from the OS CSPRNG as 64 lowercase hex characters."""
    return secrets.token_hex(TOKEN_BYTES)


def is_valid_token_format(token: object) -> bool:
    """True iff ``token`` is a 64 character hex string. Never raises."""
    return (
        isinstance(token, str)
        and len(token) == TOKEN_LENGTH
        and _TOKEN_PATTERN.fullmatch(token) is not None
    )


def _digest(value: str) -> bytes:
    return hashlib.sha256(value.encode()).digest()


@dataclass
class ValidationContext:
    """Request metadata recorded alongside a validation attempt."""

    user_id: UUID | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class ValidationResult:
    """Outcome of validating an invitation token."""

    is_valid: bool
    invitation: Invitation | None = None
    reason: str | None = None

    @property
    def status(self) -> str:
        return self.invitation.status.value if self.invitation else "INVALID"


def status_failure_reason(invitation: Invitation) -> str | None:
    """Reason an invitation cannot be used given its status, or None if PENDING."""
    match invitation.state:
        case Pending():
            return None
        case Accepted():
            return REASON_ALREADY_ACCEPTED
        case Cancelled():
            return REASON_CANCELLED
        case Expired():
            return REASON_EXPIRED
        case _:
            return REASON_INVALID_STATUS


class InvitationValidationService:
    """Validates invitation tokens and reconciles lapsed expiries.

    Every call to ``validate_token`` writes exactly one audit entry, whether
    the token is accepted or rejected.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        audit_service: InvitationAuditService,
    ) -> None:
        self._uow_factory = uow_factory
        self._audit = audit_service

    async def validate_token(
        self, token: str | None, context: ValidationContext | None = None
    ) -> ValidationResult:
        """Validate a raw token.

        Raises:
            InvitationValidationFailedError: If the lookup itself failed.
        """
        context = context or ValidationContext()

        if not is_valid_token_format(token):
            logger.warning(
                "invitation_token_invalid_format",
                token=truncate_token(token if isinstance(token, str) else None),
                ip_address=context.ip_address,
            )
            await self._audit.log_security_event(
                REASON_INVALID_FORMAT,
                user_id=context.user_id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                metadata={"token": truncate_token(token if isinstance(token, str) else None)},
            )
            return ValidationResult(is_valid=False, reason=REASON_INVALID_FORMAT)

        canonical = str(token).lower()
        now = datetime.utcnow()

        try:
            async with self._uow_factory() as uow:
                invitation = await uow.invitations.get_by_token(canonical)
                reason = REASON_NOT_FOUND if invitation is None else status_failure_reason(invitation)

                if invitation is not None and reason is None and is_expired(invitation, now):
                    await self.reconcile_expiry(uow, invitation, now)
                    await uow.commit()
                    reason = REASON_EXPIRED
        except Exception as exc:
            logger.error(
                "invitation_token_validation_error",
                token=truncate_token(canonical),
                error=error_summary(exc),
                error_type=type(exc).__name__,
            )
            await self._record(None, context, REASON_VALIDATION_FAILED, canonical)
            raise InvitationValidationFailedError() from exc

        await self._record(invitation, context, reason, canonical)

        if reason is not None:
            logger.info(
                "invitation_token_rejected",
                token=truncate_token(canonical),
                reason=reason,
            )
            return ValidationResult(is_valid=False, invitation=invitation, reason=reason)

        return ValidationResult(is_valid=True, invitation=invitation)

    async def reconcile_expiry(
        self, uow: IUnitOfWork, invitation: Invitation, now: datetime
    ) -> bool:
        """Persist PENDING -> EXPIRED for a lapsed invitation inside the caller's UoW.

        The write is conditional on the stored status still being PENDING, so
        repeated or concurrent calls flip the row at most once. Returns True
        when this call performed the flip. The caller commits.
        """
        if not invitation.is_pending or not is_expired(invitation, now):
            return False

        flipped = await uow.invitations.mark_expired_if_pending(invitation.id, now)
        invitation.expire(now)
        if flipped:
            logger.info(
                "invitation_expired_on_validation",
                invitation_id=str(invitation.id),
                tenant_id=str(invitation.tenant_id),
            )
        return flipped

    async def validate_token_cryptographically(
        self, token: str | None, context: ValidationContext | None = None
    ) -> ValidationResult:
        """Validate, then compare token digests in constant time.

        The lookup already matched the stored token exactly, so the digest
        comparison always agrees for a found invitation. It is kept as an
        invariant check, not as an additional security control.
        """
        result = await self.validate_token(token, context)
        if not result.is_valid or result.invitation is None or token is None:
            return result

        if not hmac.compare_digest(_digest(token.lower()), _digest(result.invitation.token)):
            context = context or ValidationContext()
            logger.error(
                "invitation_token_digest_mismatch",
                invitation_id=str(result.invitation.id),
                token=truncate_token(token),
            )
            await self._audit.log_security_event(
                "Token digest mismatch",
                invitation_id=result.invitation.id,
                tenant_id=result.invitation.tenant_id,
                user_id=context.user_id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
            return ValidationResult(
                is_valid=False, invitation=result.invitation, reason=REASON_VALIDATION_FAILED
            )

        return result

    async def _record(
        self,
        invitation: Invitation | None,
        context: ValidationContext,
        reason: str | None,
        token: str,
    ) -> None:
        await self._audit.log_invitation_validated(
            invitation_id=invitation.id if invitation else None,
            tenant_id=invitation.tenant_id if invitation else None,
            success=reason is None,
            user_id=context.user_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            error_message=reason,
            metadata={"token": truncate_token(token)},
        )
