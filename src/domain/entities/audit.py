"""Invitation audit log entity and action constants."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4


class AuditActions:
    """Invitation audit action constants."""

    CREATED = "invitation_created"
    SENT = "invitation_sent"
    RESENT = "invitation_resent"
    CANCELLED = "invitation_cancelled"
    ACCEPTED = "invitation_accepted"
    EXPIRED = "invitation_expired"
    VALIDATED = "invitation_validated"
    VALIDATION_FAILED = "invitation_validation_failed"
    RATE_LIMIT_EXCEEDED = "invitation_rate_limit_exceeded"
    CLEANUP = "invitation_cleanup"
    EXPORTED = "invitation_exported"

    ALL = (
        CREATED,
        SENT,
        RESENT,
        CANCELLED,
        ACCEPTED,
        EXPIRED,
        VALIDATED,
        VALIDATION_FAILED,
        RATE_LIMIT_EXCEEDED,
        CLEANUP,
        EXPORTED,
    )


@dataclass
class AuditLogEntry:
    """Append-only record of something that happened to an invitation.

    ``invitation_id`` is empty for events not tied to one invitation: malformed
    tokens, bulk operations, exports and cleanup runs.
    """

    action: str
    id: UUID = field(default_factory=uuid4)
    invitation_id: UUID | None = None
    tenant_id: UUID | None = None
    user_id: UUID | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    success: bool = True
    error_code: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)
