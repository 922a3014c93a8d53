"""Invitation repository protocol."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Protocol
from uuid import UUID

from domain.entities.invitation import Invitation, InvitationStatus

SortField = Literal["createdAt", "expiresAt", "email", "status"]
SortOrder = Literal["asc", "desc"]


@dataclass
class InvitationCriteria:
    """Filter applied to invitation queries. Datetime bounds are inclusive."""

    status: InvitationStatus | None = None
    email_contains: str | None = None
    invited_by: UUID | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    accepted_from: datetime | None = None
    accepted_to: datetime | None = None
    expires_from: datetime | None = None
    expires_to: datetime | None = None
    exclude_expired: bool = False


@dataclass
class GroupCount:
    """Aggregated count keyed by an entity id with a display label."""

    id: UUID
    label: str | None
    count: int


class IInvitationRepository(Protocol):
    """Repository interface for Invitation entities.

    Every read that serves a caller is scoped by ``tenant_id``. The only
    cross-tenant calls are the system sweeps (``find_expired_pending`` and
    ``find_cleanup_candidates``).
    """

    async def create(self, invitation: Invitation) -> Invitation:
        """Persist a new invitation with its role rows.

        Raises DuplicateInvitationError when another PENDING invitation exists
        for the same (tenant, email).
        """
        ...

    async def get_by_token(self, token: str) -> Invitation | None:
        """Get an invitation by token with tenant, inviter and roles resolved."""
        ...

    async def get_for_tenant(self, invitation_id: UUID, tenant_id: UUID) -> Invitation | None:
        """Get an invitation only if it belongs to the tenant."""
        ...

    async def get_pending_for_tenant_email(
        self, tenant_id: UUID, email: str
    ) -> Invitation | None:
        """Get the PENDING invitation for a (tenant, email) pair."""
        ...

    async def list_for_tenant(
        self,
        tenant_id: UUID,
        criteria: InvitationCriteria,
        sort_by: SortField = "createdAt",
        sort_order: SortOrder = "desc",
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Invitation], int]:
        """Get one page of invitations and the total number matching."""
        ...

    async def list_all_for_tenant(
        self, tenant_id: UUID, criteria: InvitationCriteria
    ) -> list[Invitation]:
        """Get every matching invitation, newest first."""
        ...

    async def update(self, invitation: Invitation) -> Invitation:
        """Persist status, token, expiry and lifecycle timestamps."""
        ...

    async def accept_if_pending(self, invitation_id: UUID, now: datetime) -> bool:
        """Atomically move PENDING -> ACCEPTED. False if the row was not PENDING."""
        ...

    async def mark_expired_if_pending(self, invitation_id: UUID, now: datetime) -> bool:
        """Atomically move PENDING -> EXPIRED. False if the row was not PENDING."""
        ...

    async def count(self, tenant_id: UUID, criteria: InvitationCriteria) -> int:
        """Count invitations matching the criteria."""
        ...

    async def count_by_status(self, tenant_id: UUID) -> dict[InvitationStatus, int]:
        """Count invitations per status."""
        ...

    async def top_inviters(self, tenant_id: UUID, limit: int) -> list[GroupCount]:
        """Inviters ranked by invitation count, labelled with their email."""
        ...

    async def role_distribution(self, tenant_id: UUID, limit: int) -> list[GroupCount]:
        """Roles ranked by how many invitations grant them, labelled with their name."""
        ...

    async def find_expired_pending(self, now: datetime) -> list[Invitation]:
        """PENDING invitations across all tenants whose expiry has passed."""
        ...

    async def count_expired_pending(self, now: datetime) -> int:
        """Count PENDING invitations across all tenants whose expiry has passed."""
        ...

    async def count_created_for_email_since(self, email: str, since: datetime) -> int:
        """Count invitations created for an email in any tenant since a point in time."""
        ...

    async def find_cleanup_candidates(
        self,
        accepted_before: datetime,
        expired_created_before: datetime,
        cancelled_before: datetime,
    ) -> list[Invitation]:
        """Terminal invitations older than the retention cutoffs."""
        ...

    async def delete_many(self, invitation_ids: list[UUID]) -> int:
        """Delete invitations and their role rows. Returns deleted invitation count."""
        ...
