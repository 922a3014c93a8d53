"""Invitation lifecycle service: create, resend, cancel, accept and list."""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

import structlog

from core.best_effort import best_effort
from core.exceptions import (
    DuplicateInvitationError,
    InvalidExpirationError,
    InvalidInvitationError,
    InvalidRoleAssignmentError,
    InvitationNotFoundError,
    InvitationRateLimitError,
    TenantNotFoundError,
)
from core.logging import truncate_token
from domain.entities.invitation import Invitation, normalize_email, to_naive_utc
from domain.repositories.invitation_repository import (
    InvitationCriteria,
    SortField,
    SortOrder,
)
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.audit_service import InvitationAuditService
from domain.services.notification_service import InvitationNotificationService
from domain.services.token_service import (
    InvitationValidationService,
    ValidationContext,
    generate_token,
    status_failure_reason,
)

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
EMAIL_QUOTA_WINDOW = timedelta(hours=24)


@dataclass
class CreateInvitationData:
    """Input for creating one invitation."""

    email: str
    role_ids: list[UUID] = field(default_factory=list)
    expires_at: datetime | None = None
    message: str | None = None


@dataclass
class InvitationQuery:
    """Filter, sort and paging options for listing invitations."""

    criteria: InvitationCriteria = field(default_factory=InvitationCriteria)
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    sort_by: SortField = "createdAt"
    sort_order: SortOrder = "desc"


@dataclass
class InvitationPage:
    invitations: list[Invitation]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class InvitationService:
    """Service layer for tenant invitation business logic.

    Every lookup filters by tenant, so an invitation in another tenant is
    reported as not found.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        validation_service: InvitationValidationService,
        audit_service: InvitationAuditService,
        notification_service: InvitationNotificationService | None = None,
        expiry_days: int = 7,
        email_daily_limit: int = 3,
    ) -> None:
        self._uow_factory = uow_factory
        self._validation = validation_service
        self._audit = audit_service
        self._notification = notification_service
        self._expiry_days = expiry_days
        self._email_daily_limit = email_daily_limit

    async def create_invitation(
        self,
        tenant_id: UUID,
        invited_by: UUID,
        data: CreateInvitationData,
        context: ValidationContext | None = None,
    ) -> Invitation:
        """Create a PENDING invitation with its role snapshot.

        Raises:
            InvalidExpirationError: If the requested expiry is not in the future.
            TenantNotFoundError: If the tenant does not exist.
            InvalidRoleAssignmentError: If any role is not owned by the tenant.
            DuplicateInvitationError: If a PENDING invitation exists for the email.
            InvitationRateLimitError: If the email already received too many
                invitations in the last 24 hours.
        """
        context = context or ValidationContext()
        email = normalize_email(data.email)
        now = datetime.utcnow()
        expires_at = self._resolve_expiry(data.expires_at, now)
        role_ids = list(dict.fromkeys(data.role_ids))
        await self._enforce_email_quota(tenant_id, invited_by, email, now, context)

        async with self._uow_factory() as uow:
            tenant = await uow.tenants.get(tenant_id)
            if not tenant:
                raise TenantNotFoundError(str(tenant_id))

            if role_ids:
                owned = {role.id for role in await uow.roles.get_many_for_tenant(tenant_id, role_ids)}
                invalid = [str(role_id) for role_id in role_ids if role_id not in owned]
                if invalid:
                    raise InvalidRoleAssignmentError(invalid)

            # The partial unique index on (tenant_id, email) closes the race
            # between this check and the insert.
            if await uow.invitations.get_pending_for_tenant_email(tenant_id, email):
                raise DuplicateInvitationError(email)

            invitation = Invitation(
                tenant_id=tenant_id,
                email=email,
                token=generate_token(),
                invited_by=invited_by,
                expires_at=expires_at,
                message=data.message,
                role_ids=role_ids,
                created_at=now,
                updated_at=now,
            )
            created = await uow.invitations.create(invitation)
            await uow.commit()

        logger.info(
            "invitation_created",
            invitation_id=str(created.id),
            tenant_id=str(tenant_id),
            token=truncate_token(created.token),
            role_count=len(role_ids),
        )
        await self._audit.log_invitation_created(
            invitation_id=created.id,
            tenant_id=tenant_id,
            user_id=invited_by,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            metadata={"email": email, "role_ids": [str(role_id) for role_id in role_ids]},
        )
        if self._notification:
            await best_effort(
                "send_invitation_email",
                self._notification.send_invitation_email(created),
                invitation_id=str(created.id),
            )
        return created

    async def resend_invitation(
        self,
        invitation_id: UUID,
        tenant_id: UUID,
        actor_id: UUID | None = None,
        context: ValidationContext | None = None,
    ) -> Invitation:
        """Issue a fresh token and a new expiry for a PENDING invitation.

        Raises:
            InvitationNotFoundError: If no such invitation exists in the tenant.
            InvalidInvitationStatusError: If the invitation is not PENDING.
        """
        context = context or ValidationContext()
        now = datetime.utcnow()

        async with self._uow_factory() as uow:
            invitation = await self._get_for_tenant(uow, invitation_id, tenant_id)
            previous_expiry = invitation.expires_at
            invitation.renew(
                token=generate_token(),
                expires_at=now + timedelta(days=self._expiry_days),
                now=now,
            )
            updated = await uow.invitations.update(invitation)
            await uow.commit()

        logger.info(
            "invitation_resent",
            invitation_id=str(invitation_id),
            tenant_id=str(tenant_id),
            token=truncate_token(updated.token),
        )
        await self._audit.log_invitation_resent(
            invitation_id=invitation_id,
            tenant_id=tenant_id,
            user_id=actor_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            metadata={
                "previous_expires_at": previous_expiry.isoformat(),
                "expires_at": updated.expires_at.isoformat(),
            },
        )
        if self._notification:
            await best_effort(
                "send_invitation_email",
                self._notification.send_invitation_email(updated),
                invitation_id=str(invitation_id),
            )
        return updated

    async def cancel_invitation(
        self,
        invitation_id: UUID,
        tenant_id: UUID,
        actor_id: UUID | None = None,
        context: ValidationContext | None = None,
    ) -> Invitation:
        """Cancel a PENDING invitation.

        Raises:
            InvitationNotFoundError: If no such invitation exists in the tenant.
            InvalidInvitationStatusError: If the invitation is not PENDING.
        """
        context = context or ValidationContext()

        async with self._uow_factory() as uow:
            invitation = await self._get_for_tenant(uow, invitation_id, tenant_id)
            invitation.cancel(datetime.utcnow())
            updated = await uow.invitations.update(invitation)
            await uow.commit()

        logger.info("invitation_cancelled", invitation_id=str(invitation_id), tenant_id=str(tenant_id))
        await self._audit.log_invitation_cancelled(
            invitation_id=invitation_id,
            tenant_id=tenant_id,
            user_id=actor_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            metadata={"email": updated.email},
        )
        return updated

    async def accept_invitation(
        self, token: str, context: ValidationContext | None = None
    ) -> Invitation:
        """Re-validate the token and mark the invitation ACCEPTED.

        This only changes invitation status. Account creation lives in the
        acceptance service.

        Raises:
            InvalidInvitationError: If the token is invalid or no longer PENDING.
        """
        context = context or ValidationContext()
        result = await self._validation.validate_token(token, context)
        if not result.is_valid or result.invitation is None:
            raise InvalidInvitationError(result.reason or "Invalid invitation token")

        invitation = result.invitation
        now = datetime.utcnow()

        async with self._uow_factory() as uow:
            if not await uow.invitations.accept_if_pending(invitation.id, now):
                # Another request changed the status after validation.
                current = await uow.invitations.get_for_tenant(invitation.id, invitation.tenant_id)
                reason = status_failure_reason(current) if current else None
                raise InvalidInvitationError(reason or "Invalid invitation status")
            await uow.commit()

        invitation.accept(now)
        logger.info(
            "invitation_accepted",
            invitation_id=str(invitation.id),
            tenant_id=str(invitation.tenant_id),
            token=truncate_token(token),
        )
        await self._audit.log_invitation_accepted(
            invitation_id=invitation.id,
            tenant_id=invitation.tenant_id,
            user_id=context.user_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        return invitation

    async def get_invitations(self, tenant_id: UUID, query: InvitationQuery) -> InvitationPage:
        """List one page of the tenant's invitations."""
        page = max(1, query.page)
        limit = min(max(1, query.limit), MAX_PAGE_SIZE)
        if query.criteria.email_contains:
            query.criteria.email_contains = query.criteria.email_contains.strip().lower()

        async with self._uow_factory() as uow:
            invitations, total = await uow.invitations.list_for_tenant(
                tenant_id,
                query.criteria,
                sort_by=query.sort_by,
                sort_order=query.sort_order,
                offset=(page - 1) * limit,
                limit=limit,
            )

        return InvitationPage(invitations=invitations, total=total, page=page, limit=limit)

    async def get_invitation(self, invitation_id: UUID, tenant_id: UUID) -> Invitation:
        """Get one invitation of the tenant.

        Raises:
            InvitationNotFoundError: If no such invitation exists in the tenant.
        """
        async with self._uow_factory() as uow:
            return await self._get_for_tenant(uow, invitation_id, tenant_id)

    # --- Helpers ---

    def _resolve_expiry(self, requested: datetime | None, now: datetime) -> datetime:
        if requested is None:
            return now + timedelta(days=self._expiry_days)
        requested = to_naive_utc(requested)
        if requested <= now:
            raise InvalidExpirationError()
        return requested

    async def _enforce_email_quota(
        self,
        tenant_id: UUID,
        invited_by: UUID,
        email: str,
        now: datetime,
        context: ValidationContext,
    ) -> None:
        """Reject the create once an email has hit its rolling 24 hour quota."""
        async with self._uow_factory() as uow:
            recent = await uow.invitations.count_created_for_email_since(
                email, now - EMAIL_QUOTA_WINDOW
            )
        if recent < self._email_daily_limit:
            return

        logger.warning(
            "invitation_rate_limit_exceeded",
            scope="email",
            tenant_id=str(tenant_id),
            recent=recent,
            limit=self._email_daily_limit,
        )
        await best_effort(
            "audit_rate_limit_exceeded",
            self._audit.log_rate_limit_exceeded(
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                metadata={"scope": "email", "email": email, "limit": self._email_daily_limit},
                tenant_id=tenant_id,
                user_id=invited_by,
            ),
        )
        raise InvitationRateLimitError(
            self._email_daily_limit, int(EMAIL_QUOTA_WINDOW.total_seconds() // 3600)
        )

    async def _get_for_tenant(
        self, uow: IUnitOfWork, invitation_id: UUID, tenant_id: UUID
    ) -> Invitation:
        invitation = await uow.invitations.get_for_tenant(invitation_id, tenant_id)
        if not invitation:
            raise InvitationNotFoundError(str(invitation_id))
        return invitation
