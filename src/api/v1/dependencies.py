"""Dependency injection factories for API v1."""

from functools import lru_cache
from typing import Callable

from api.dependencies.auth import get_auth_provider
from core.config import settings
from domain.services.acceptance_service import InvitationAcceptanceService
from domain.services.audit_service import InvitationAuditService
from domain.services.invitation_service import InvitationService
from domain.services.management_service import InvitationManagementService
from domain.services.notification_service import InvitationNotificationService
from domain.services.status_service import InvitationStatusService
from domain.services.token_service import InvitationValidationService
from domain.services.verification_service import EmailVerificationService
from infrastructure.auth.google_oauth import GoogleOAuthClient
from infrastructure.auth.password import BcryptPasswordHasher
from infrastructure.database.session import async_session_factory
from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
from infrastructure.email.sender import LoggingEmailSender


def get_uow_factory() -> Callable[[], SQLAlchemyUnitOfWork]:
    """Factory for creating Unit of Work instances."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(async_session_factory)

    return factory


@lru_cache
def get_email_sender() -> LoggingEmailSender:
    """Get email sender instance."""
    return LoggingEmailSender(settings.email_from_address)


@lru_cache
def get_audit_service() -> InvitationAuditService:
    """Get invitation audit service instance."""
    return InvitationAuditService(get_uow_factory())


@lru_cache
def get_notification_service() -> InvitationNotificationService:
    """Get invitation notification service instance."""
    return InvitationNotificationService(
        get_email_sender(),
        audit_service=get_audit_service(),
        frontend_url=settings.frontend_url,
        max_attempts=settings.email_max_attempts,
        backoff_base_seconds=settings.email_backoff_base_seconds,
    )


@lru_cache
def get_validation_service() -> InvitationValidationService:
    """Get token validation service instance."""
    return InvitationValidationService(get_uow_factory(), audit_service=get_audit_service())


@lru_cache
def get_invitation_service() -> InvitationService:
    """Get Invitation service instance."""
    return InvitationService(
        get_uow_factory(),
        validation_service=get_validation_service(),
        audit_service=get_audit_service(),
        notification_service=get_notification_service(),
        expiry_days=settings.invitation_expiry_days,
        email_daily_limit=settings.invitation_email_daily_limit,
    )


@lru_cache
def get_verification_service() -> EmailVerificationService:
    """Get email verification service instance."""
    return EmailVerificationService(
        get_uow_factory(),
        get_email_sender(),
        ttl_minutes=settings.verification_code_ttl_minutes,
    )


@lru_cache
def get_google_client() -> GoogleOAuthClient:
    """Get Google OAuth client instance."""
    return GoogleOAuthClient(settings)


@lru_cache
def get_acceptance_service() -> InvitationAcceptanceService:
    """Get invitation acceptance service instance."""
    return InvitationAcceptanceService(
        get_uow_factory(),
        validation_service=get_validation_service(),
        invitation_service=get_invitation_service(),
        password_hasher=BcryptPasswordHasher(),
        token_issuer=get_auth_provider(),
        google_provider=get_google_client(),
        verification_service=get_verification_service(),
        notification_service=get_notification_service(),
    )


@lru_cache
def get_management_service() -> InvitationManagementService:
    """Get bulk and reporting service instance."""
    return InvitationManagementService(
        get_uow_factory(),
        invitation_service=get_invitation_service(),
        audit_service=get_audit_service(),
        bulk_create_max=settings.bulk_create_max,
        bulk_update_max=settings.bulk_update_max,
    )


@lru_cache
def get_status_service() -> InvitationStatusService:
    """Get invitation expiry and cleanup service instance."""
    return InvitationStatusService(
        get_uow_factory(),
        audit_service=get_audit_service(),
        notification_service=get_notification_service(),
        retention_days=settings.invitation_retention_days,
    )
