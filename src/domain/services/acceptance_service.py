"""Invitation acceptance: turn a valid invitation into a tenant user account."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

import structlog

from core.best_effort import best_effort
from core.exceptions import (
    AppException,
    GoogleAuthError,
    GoogleEmailMismatchError,
    GoogleSsoDisabledError,
    InvalidAuthMethodError,
    InvalidInvitationError,
    InvitationAcceptanceError,
    TenantNotFoundError,
    UserAlreadyExistsError,
)
from core.logging import error_summary, truncate_token
from domain.entities.invitation import Invitation, RoleSummary, TenantSummary
from domain.entities.tenant import DEFAULT_MEMBER_ROLE_NAME, Tenant
from domain.entities.user import AuthMethod, User
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.invitation_service import InvitationService
from domain.services.notification_service import InvitationNotificationService
from domain.services.token_service import InvitationValidationService, ValidationContext
from domain.services.verification_service import EmailVerificationService

logger = structlog.get_logger()

MIN_PASSWORD_LENGTH = 8
ACCEPTED_MESSAGE = "Invitation accepted successfully"


# --- Ports ---


@dataclass
class GoogleProfile:
    """Identity asserted by a verified Google ID token."""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    email_verified: bool = False
    picture: str | None = None


@dataclass
class GoogleTokens:
    id_token: str
    access_token: str | None = None


class IGoogleIdentityProvider(Protocol):
    """OAuth client for Google sign-in."""

    def create_state(self, invitation_id: UUID) -> str: ...

    def read_state(self, state: str) -> UUID: ...

    def generate_auth_url(self, state: str) -> str: ...

    async def exchange_code_for_tokens(self, code: str) -> GoogleTokens: ...

    async def verify_id_token(self, id_token: str) -> GoogleProfile: ...


class IPasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, password: str, password_hash: str) -> bool: ...


class ISessionTokenIssuer(Protocol):
    def create_access_token(
        self, user_id: UUID, tenant_id: UUID, role_ids: list[UUID], email: str
    ) -> str: ...


# --- DTOs ---


@dataclass
class AcceptInvitationData:
    """Acceptance request payload."""

    auth_method: str
    password: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    google_code: str | None = None
    state: str | None = None


@dataclass
class AcceptanceResult:
    user: User
    tenant: TenantSummary
    roles: list[RoleSummary]
    access_token: str
    message: str = ACCEPTED_MESSAGE
    verification_required: bool | None = None


@dataclass
class GoogleAuthUrl:
    auth_url: str
    state: str


@dataclass
class _PreparedUser:
    user: User
    method: AuthMethod


class InvitationAcceptanceService:
    """Orchestrates acceptance by password or Google sign-in.

    Steps run in order and stop at the first failure: validate the token,
    reject existing users, prepare the account for the chosen method, create
    user and roles in one unit of work, mark the invitation accepted, then
    issue a session token. Nothing is written before user creation.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        validation_service: InvitationValidationService,
        invitation_service: InvitationService,
        password_hasher: IPasswordHasher,
        token_issuer: ISessionTokenIssuer,
        google_provider: IGoogleIdentityProvider | None = None,
        verification_service: EmailVerificationService | None = None,
        notification_service: InvitationNotificationService | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._validation = validation_service
        self._invitations = invitation_service
        self._hasher = password_hasher
        self._tokens = token_issuer
        self._google = google_provider
        self._verification = verification_service
        self._notification = notification_service

    async def accept(
        self,
        token: str,
        data: AcceptInvitationData,
        context: ValidationContext | None = None,
    ) -> AcceptanceResult:
        """Accept an invitation and create the invitee's account.

        Raises:
            InvalidInvitationError: If the token is not usable.
            UserAlreadyExistsError: If the email already has an account in the tenant.
            InvalidAuthMethodError: If the method or its payload is invalid.
            GoogleAuthError: If Google rejects the authorization code or ID token.
            GoogleEmailMismatchError: If the Google account is for another email.
            GoogleSsoDisabledError: If the tenant does not allow Google sign-in.
            InvitationAcceptanceError: If account creation fails unexpectedly.
        """
        context = context or ValidationContext()

        # 1. Validate
        validation = await self._validation.validate_token(token, context)
        if not validation.is_valid or validation.invitation is None:
            raise InvalidInvitationError(validation.reason or "Invalid invitation token")
        invitation = validation.invitation

        # 2. Existing user
        async with self._uow_factory() as uow:
            if await uow.users.get_by_email(invitation.tenant_id, invitation.email):
                raise UserAlreadyExistsError(invitation.email)

        # 3. Method
        if data.auth_method == AuthMethod.PASSWORD:
            prepared = await self._prepare_password_user(invitation, data)
        elif data.auth_method == AuthMethod.GOOGLE:
            prepared = await self._prepare_google_user(invitation, data)
        else:
            raise InvalidAuthMethodError()

        # 4. User and roles, atomically
        user = await self._create_user_with_roles(invitation, prepared.user)

        # 5. Invitation status
        await self._invitations.accept_invitation(
            token,
            ValidationContext(
                user_id=user.id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            ),
        )

        # 6. Re-read tenant and granted roles
        async with self._uow_factory() as uow:
            tenant = await uow.tenants.get(invitation.tenant_id)
            roles = await uow.users.get_roles(user.id, invitation.tenant_id)
        if not tenant:
            raise TenantNotFoundError(str(invitation.tenant_id))

        # 7. Session
        role_summaries = [RoleSummary(id=role.id, name=role.name) for role in roles]
        access_token = self._tokens.create_access_token(
            user_id=user.id,
            tenant_id=tenant.id,
            role_ids=[role.id for role in roles],
            email=user.email,
        )

        verification_required = None
        if prepared.method == AuthMethod.PASSWORD:
            verification_required = True
            if self._verification:
                await best_effort(
                    "send_verification_code",
                    self._verification.send_verification_code(user),
                    user_id=str(user.id),
                )

        if self._notification:
            await best_effort(
                "send_invitation_status_notification",
                self._notification.send_invitation_status_notification(invitation, "accepted"),
                invitation_id=str(invitation.id),
            )

        logger.info(
            "invitation_acceptance_completed",
            invitation_id=str(invitation.id),
            tenant_id=str(tenant.id),
            user_id=str(user.id),
            auth_method=prepared.method.value,
            role_count=len(roles),
        )
        return AcceptanceResult(
            user=user,
            tenant=TenantSummary(id=tenant.id, name=tenant.name, subdomain=tenant.subdomain),
            roles=role_summaries,
            access_token=access_token,
            verification_required=verification_required,
        )

    async def get_google_auth_url(
        self, token: str, context: ValidationContext | None = None
    ) -> GoogleAuthUrl:
        """Build the Google consent URL for an invitation.

        Raises:
            InvalidInvitationError: If the token is not usable.
            GoogleSsoDisabledError: If the tenant does not allow Google sign-in.
        """
        google = self._require_google()
        validation = await self._validation.validate_token(token, context)
        if not validation.is_valid or validation.invitation is None:
            raise InvalidInvitationError(validation.reason or "Invalid invitation token")

        invitation = validation.invitation
        await self._require_google_sso(invitation.tenant_id)

        state = google.create_state(invitation.id)
        return GoogleAuthUrl(auth_url=google.generate_auth_url(state), state=state)

    # --- Steps ---

    async def _prepare_password_user(
        self, invitation: Invitation, data: AcceptInvitationData
    ) -> _PreparedUser:
        if not data.password or not data.first_name or not data.last_name:
            raise InvalidAuthMethodError(
                "Password, first name, and last name are required for password authentication"
            )
        if len(data.password) < MIN_PASSWORD_LENGTH:
            raise InvalidAuthMethodError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        password_hash = await asyncio.to_thread(self._hasher.hash, data.password)
        user = User(
            tenant_id=invitation.tenant_id,
            email=invitation.email,
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            password_hash=password_hash,
            auth_methods=[AuthMethod.PASSWORD.value],
            email_verified=False,
        )
        return _PreparedUser(user=user, method=AuthMethod.PASSWORD)

    async def _prepare_google_user(
        self, invitation: Invitation, data: AcceptInvitationData
    ) -> _PreparedUser:
        if not data.google_code:
            raise InvalidAuthMethodError("Google authorization code is required")
        google = self._require_google()

        if data.state is not None and google.read_state(data.state) != invitation.id:
            raise GoogleAuthError("Invalid OAuth state")

        try:
            tokens = await google.exchange_code_for_tokens(data.google_code)
            profile = await google.verify_id_token(tokens.id_token)
        except AppException:
            raise
        except Exception as exc:
            logger.error(
                "google_authentication_failed",
                invitation_id=str(invitation.id),
                error=error_summary(exc),
                error_type=type(exc).__name__,
            )
            raise GoogleAuthError() from exc

        if profile.email != invitation.email:
            logger.warning(
                "google_email_mismatch",
                invitation_id=str(invitation.id),
                tenant_id=str(invitation.tenant_id),
            )
            raise GoogleEmailMismatchError()

        await self._require_google_sso(invitation.tenant_id)

        now = datetime.utcnow()
        user = User(
            tenant_id=invitation.tenant_id,
            email=invitation.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            google_id=profile.id,
            google_linked_at=now,
            auth_methods=[AuthMethod.GOOGLE.value],
            email_verified=True,
        )
        return _PreparedUser(user=user, method=AuthMethod.GOOGLE)

    async def _create_user_with_roles(self, invitation: Invitation, user: User) -> User:
        """Create the user and grant roles in one transaction."""
        try:
            async with self._uow_factory() as uow:
                created = await uow.users.create(user)

                role_ids = list(invitation.role_ids)
                if not role_ids:
                    default_role = await uow.roles.get_by_name(
                        invitation.tenant_id, DEFAULT_MEMBER_ROLE_NAME
                    )
                    role_ids = [default_role.id] if default_role else []

                if role_ids:
                    await uow.users.assign_roles(created.id, role_ids)
                await uow.commit()
        except AppException:
            raise
        except Exception as exc:
            logger.error(
                "invitation_user_creation_failed",
                invitation_id=str(invitation.id),
                token=truncate_token(invitation.token),
                error=error_summary(exc),
                error_type=type(exc).__name__,
            )
            raise InvitationAcceptanceError("User creation failed") from exc

        logger.info(
            "invitation_user_created",
            invitation_id=str(invitation.id),
            user_id=str(created.id),
            role_count=len(role_ids),
        )
        return created

    async def _require_google_sso(self, tenant_id: UUID) -> Tenant:
        async with self._uow_factory() as uow:
            tenant = await uow.tenants.get(tenant_id)
        if not tenant:
            raise TenantNotFoundError(str(tenant_id))
        if not tenant.google_sso_enabled:
            raise GoogleSsoDisabledError()
        return tenant

    def _require_google(self) -> IGoogleIdentityProvider:
        if self._google is None:
            raise InvalidAuthMethodError("Google authentication is not configured")
        return self._google
