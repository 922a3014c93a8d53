"""Invitation domain entity and lifecycle states."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from uuid import UUID, uuid4

from core.exceptions import InvalidInvitationStatusError


class InvitationStatus(StrEnum):
    """Persisted status of a tenant invitation."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset(
    {InvitationStatus.ACCEPTED, InvitationStatus.EXPIRED, InvitationStatus.CANCELLED}
)


# --- Lifecycle states ---
# Derived view over (status, accepted_at, cancelled_at). Only Pending may transition.


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Accepted:
    at: datetime


@dataclass(frozen=True)
class Expired:
    pass


@dataclass(frozen=True)
class Cancelled:
    at: datetime


InvitationState = Pending | Accepted | Expired | Cancelled


@dataclass
class RoleSummary:
    """Role snapshot attached to an invitation."""

    id: UUID
    name: str


@dataclass
class TenantSummary:
    """Tenant display info resolved alongside an invitation."""

    id: UUID
    name: str
    subdomain: str | None = None


@dataclass
class InviterSummary:
    """Inviting user resolved alongside an invitation."""

    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.email


@dataclass
class Invitation:
    """Domain entity for an offer to join a tenant with a set of roles."""

    tenant_id: UUID
    email: str
    token: str
    invited_by: UUID
    expires_at: datetime
    id: UUID = field(default_factory=uuid4)
    status: InvitationStatus = InvitationStatus.PENDING
    message: str | None = None
    accepted_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    role_ids: list[UUID] = field(default_factory=list)
    roles: list[RoleSummary] = field(default_factory=list)
    tenant: TenantSummary | None = None
    inviter: InviterSummary | None = None

    @property
    def state(self) -> InvitationState:
        """Tagged view of the current lifecycle state."""
        if self.status == InvitationStatus.ACCEPTED:
            return Accepted(at=self.accepted_at or self.updated_at)
        if self.status == InvitationStatus.CANCELLED:
            return Cancelled(at=self.cancelled_at or self.updated_at)
        if self.status == InvitationStatus.EXPIRED:
            return Expired()
        return Pending()

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING

    def accept(self, now: datetime | None = None) -> None:
        """Transition PENDING -> ACCEPTED."""
        self._require_pending("accept")
        now = now or datetime.utcnow()
        self.status = InvitationStatus.ACCEPTED
        self.accepted_at = now
        self.updated_at = now

    def cancel(self, now: datetime | None = None) -> None:
        """Transition PENDING -> CANCELLED."""
        self._require_pending("cancel")
        now = now or datetime.utcnow()
        self.status = InvitationStatus.CANCELLED
        self.cancelled_at = now
        self.updated_at = now

    def expire(self, now: datetime | None = None) -> None:
        """Transition PENDING -> EXPIRED."""
        self._require_pending("expire")
        self.status = InvitationStatus.EXPIRED
        self.updated_at = now or datetime.utcnow()

    def renew(self, token: str, expires_at: datetime, now: datetime | None = None) -> None:
        """Issue a fresh token and expiry. Roles and message are untouched."""
        self._require_pending("resend")
        self.token = token
        self.expires_at = expires_at
        self.updated_at = now or datetime.utcnow()

    def _require_pending(self, operation: str) -> None:
        if self.status != InvitationStatus.PENDING:
            raise InvalidInvitationStatusError(operation, self.status.value)


def is_expired(invitation: Invitation, now: datetime) -> bool:
    """True once the expiry instant has been reached, regardless of status."""
    return invitation.expires_at <= now


def normalize_email(email: str) -> str:
    return email.strip().lower()


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC. Naive values are assumed to be UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
