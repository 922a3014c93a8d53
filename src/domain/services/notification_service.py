"""Invitation email notifications with retrying delivery."""

import asyncio
from dataclasses import dataclass
from typing import Literal, Protocol

import structlog

from core.logging import error_summary
from domain.entities.invitation import Invitation
from domain.entities.tenant import DEFAULT_MEMBER_ROLE_NAME
from domain.services.audit_service import InvitationAuditService

logger = structlog.get_logger()

REMINDER_NOTE = "This is a reminder that your invitation will expire soon."

StatusEvent = Literal["accepted", "expired", "cancelled"]


@dataclass
class EmailMessage:
    """Outbound email."""

    to: str
    subject: str
    text: str
    html: str | None = None


class IEmailSender(Protocol):
    """Transport that hands an email to a delivery provider."""

    async def send(self, message: EmailMessage) -> str:
        """Deliver the message and return a provider message id."""
        ...


@dataclass
class DeliveryResult:
    """Outcome of a notification send."""

    success: bool
    message_id: str | None = None
    attempts: int = 0
    error: str | None = None


class InvitationNotificationService:
    """Sends invitation emails and inviter notifications.

    Delivery retries with exponential backoff. A send that never succeeds
    returns a failed DeliveryResult; it does not raise.
    """

    def __init__(
        self,
        sender: IEmailSender,
        audit_service: InvitationAuditService,
        frontend_url: str,
        max_attempts: int = 3,
        backoff_base_seconds: float = 1.0,
    ) -> None:
        self._sender = sender
        self._audit = audit_service
        self._frontend_url = frontend_url.rstrip("/")
        self._max_attempts = max(1, max_attempts)
        self._backoff_base = backoff_base_seconds

    def invitation_url(self, token: str) -> str:
        return f"{self._frontend_url}/invitations/{token}"

    async def send_invitation_email(
        self, invitation: Invitation, custom_message: str | None = None
    ) -> DeliveryResult:
        """Email the invitee a link to accept the invitation."""
        tenant_name = invitation.tenant.name if invitation.tenant else "Organization"
        inviter_name = invitation.inviter.display_name if invitation.inviter else "Team Admin"
        role_names = [role.name for role in invitation.roles] or [DEFAULT_MEMBER_ROLE_NAME]
        message_text = custom_message if custom_message is not None else invitation.message

        lines = [
            f"{inviter_name} has invited you to join {tenant_name}.",
            f"Roles: {', '.join(role_names)}",
        ]
        if message_text:
            lines.extend(["", message_text])
        lines.extend(
            [
                "",
                f"Accept the invitation: {self.invitation_url(invitation.token)}",
                f"This invitation expires at {invitation.expires_at.isoformat()} UTC.",
            ]
        )

        result = await self._deliver(
            EmailMessage(
                to=invitation.email,
                subject=f"You're invited to join {tenant_name}",
                text="\n".join(lines),
            )
        )

        await self._audit.log_invitation_sent(
            invitation_id=invitation.id,
            tenant_id=invitation.tenant_id,
            success=result.success,
            user_id=invitation.invited_by,
            error_message=result.error,
            metadata={"attempts": result.attempts, "message_id": result.message_id},
        )
        return result

    async def send_invitation_reminder(
        self, invitation: Invitation, custom_message: str | None = None
    ) -> DeliveryResult:
        base = custom_message if custom_message is not None else invitation.message
        note = f"{base}\n\n{REMINDER_NOTE}" if base else REMINDER_NOTE
        return await self.send_invitation_email(invitation, custom_message=note)

    async def send_invitation_status_notification(
        self, invitation: Invitation, status: StatusEvent
    ) -> DeliveryResult:
        """Tell the inviter that their invitation was accepted, expired or cancelled."""
        if invitation.inviter is None:
            logger.warning(
                "invitation_status_notification_skipped",
                invitation_id=str(invitation.id),
                reason="inviter_unknown",
            )
            return DeliveryResult(success=False, error="Inviter not found")

        tenant_name = invitation.tenant.name if invitation.tenant else "the organization"
        templates = {
            "accepted": (
                "Invitation Accepted",
                f"{invitation.email} has accepted your invitation to join {tenant_name}",
            ),
            "expired": (
                "Invitation Expired",
                f"The invitation for {invitation.email} to join {tenant_name} has expired",
            ),
            "cancelled": (
                "Invitation Cancelled",
                f"The invitation for {invitation.email} to join {tenant_name} has been cancelled",
            ),
        }
        subject, text = templates[status]
        return await self._deliver(EmailMessage(to=invitation.inviter.email, subject=subject, text=text))

    async def send_bulk_invitation_summary(
        self, invitations: list[Invitation], admin_email: str
    ) -> DeliveryResult:
        count = len(invitations)
        emails = ", ".join(invitation.email for invitation in invitations)
        plural = "s" if count != 1 else ""
        return await self._deliver(
            EmailMessage(
                to=admin_email,
                subject="Bulk Invitations Sent",
                text=f"Successfully sent {count} invitation{plural} to: {emails}",
            )
        )

    async def _deliver(self, message: EmailMessage) -> DeliveryResult:
        last_error: str | None = None
        for attempt in range(self._max_attempts):
            try:
                message_id = await self._sender.send(message)
                logger.info(
                    "invitation_email_sent",
                    subject=message.subject,
                    attempts=attempt + 1,
                    message_id=message_id,
                )
                return DeliveryResult(success=True, message_id=message_id, attempts=attempt + 1)
            except Exception as exc:
                last_error = error_summary(exc)
                logger.warning(
                    "invitation_email_attempt_failed",
                    subject=message.subject,
                    attempt=attempt + 1,
                    max_attempts=self._max_attempts,
                    error=last_error,
                )
                if attempt + 1 < self._max_attempts:
                    await asyncio.sleep(self._backoff_base * 2**attempt)

        logger.error(
            "invitation_email_delivery_failed",
            subject=message.subject,
            attempts=self._max_attempts,
            error=last_error,
        )
        return DeliveryResult(
            success=False,
            attempts=self._max_attempts,
            error=f"Email delivery failed after {self._max_attempts} attempts: {last_error}",
        )
