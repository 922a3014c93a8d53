"""Unit tests for InvitationManagementService."""

import csv
import io
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from core.exceptions import (
    BulkLimitError,
    DuplicateInvitationError,
    InvalidInvitationStatusError,
    InvitationNotFoundError,
)
from domain.entities.audit import AuditActions
from domain.entities.invitation import InvitationStatus
from domain.repositories.invitation_repository import GroupCount
from domain.services.management_service import (
    CSV_HEADERS,
    InvitationManagementService,
    ReportOptions,
    is_valid_email,
)
from tests.unit.conftest import FakeUnitOfWork, make_invitation


@pytest.fixture
def invitations() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(
    uow: FakeUnitOfWork, invitations: AsyncMock, audit: AsyncMock
) -> InvitationManagementService:
    return InvitationManagementService(lambda: uow, invitations, audit)


class TestEmailFormat:
    @pytest.mark.parametrize("email", ["a@b.co", "first.last@sub.example.com"])
    def test_valid(self, email: str) -> None:
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "a b@c.com", "@c.com", ""])
    def test_invalid(self, email: str) -> None:
        assert not is_valid_email(email)


# --- bulk create ---


class TestBulkCreate:
    @pytest.mark.asyncio
    async def test_mixed_outcomes_per_item(
        self,
        service: InvitationManagementService,
        invitations: AsyncMock,
        audit: AsyncMock,
        tenant_id: UUID,
        user_id: UUID,
    ) -> None:
        async def create(_tenant: UUID, _actor: UUID, data: Any, _ctx: Any) -> Any:
            if data.email == "taken@x.com":
                raise DuplicateInvitationError(data.email)
            return make_invitation(tenant_id, email=data.email)

        invitations.create_invitation.side_effect = create

        result = await service.create_bulk_invitations(
            tenant_id, user_id, ["a@x.com", "not-an-email", "taken@x.com"], []
        )

        assert result.summary == {"total": 3, "successful": 1, "failed": 2}
        assert [s.email for s in result.successful] == ["a@x.com"]
        errors = {f.email: f.error for f in result.failed}
        assert errors["not-an-email"] == "Invalid email format"
        assert errors["taken@x.com"] == "A pending invitation already exists for this email address"
        audit.log_invitation_created.assert_awaited_once()
        metadata = audit.log_invitation_created.await_args.kwargs["metadata"]
        assert metadata["bulk_operation"] is True
        assert metadata["failed"] == 2

    @pytest.mark.asyncio
    async def test_duplicates_collapse_but_total_counts_input(
        self,
        service: InvitationManagementService,
        invitations: AsyncMock,
        tenant_id: UUID,
        user_id: UUID,
    ) -> None:
        invitations.create_invitation.side_effect = lambda *args: make_invitation(tenant_id)

        result = await service.create_bulk_invitations(
            tenant_id, user_id, ["A@x.com", "a@x.com ", "b@x.com"], []
        )

        assert invitations.create_invitation.await_count == 2
        assert result.total == 3
        assert len(result.successful) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported_generically(
        self,
        service: InvitationManagementService,
        invitations: AsyncMock,
        tenant_id: UUID,
        user_id: UUID,
    ) -> None:
        invitations.create_invitation.side_effect = RuntimeError("db gone")

        result = await service.create_bulk_invitations(tenant_id, user_id, ["a@x.com"], [])

        assert result.failed[0].error == "Unknown error"

    @pytest.mark.asyncio
    async def test_empty_list_rejected(
        self, service: InvitationManagementService, tenant_id: UUID, user_id: UUID
    ) -> None:
        with pytest.raises(BulkLimitError) as exc_info:
            await service.create_bulk_invitations(tenant_id, user_id, [], [])

        assert exc_info.value.message == "Email list cannot be empty"

    @pytest.mark.asyncio
    async def test_over_cap_rejected(
        self,
        service: InvitationManagementService,
        invitations: AsyncMock,
        tenant_id: UUID,
        user_id: UUID,
    ) -> None:
        emails = [f"user{i}@x.com" for i in range(101)]

        with pytest.raises(BulkLimitError) as exc_info:
            await service.create_bulk_invitations(tenant_id, user_id, emails, [])

        assert exc_info.value.message == "Cannot create more than 100 invitations at once"
        invitations.create_invitation.assert_not_called()


# --- bulk cancel / resend ---


class TestBulkCancelAndResend:
    @pytest.mark.asyncio
    async def test_cancel_reports_failures_with_email(
        self,
        service: InvitationManagementService,
        invitations: AsyncMock,
        audit: AsyncMock,
        tenant_id: UUID,
        user_id: UUID,
    ) -> None:
        ok, accepted, missing = uuid4(), uuid4(), uuid4()

        async def cancel(invitation_id: UUID, *_args: Any) -> Any:
            if invitation_id == accepted:
                raise InvalidInvitationStatusError("cancel", "ACCEPTED")
            if invitation_id == missing:
                raise InvitationNotFoundError(str(invitation_id))
            return make_invitation(tenant_id, email="ok@x.com")

        async def lookup(invitation_id: UUID, _tenant: UUID) -> Any:
            if invitation_id == missing:
                raise InvitationNotFoundError(str(invitation_id))
            return make_invitation(tenant_id, email="accepted@x.com")

        invitations.cancel_invitation.side_effect = cancel
        invitations.get_invitation.side_effect = lookup

        result = await service.cancel_bulk_invitations(tenant_id, [ok, accepted, missing], user_id)

        assert result.summary == {"total": 3, "successful": 1, "failed": 2}
        assert result.successful[0].invitation_id == ok
        assert [(f.email, f.error) for f in result.failed] == [
            ("accepted@x.com", "Cannot cancel invitation with status: ACCEPTED"),
            ("unknown", "Invitation not found"),
        ]
        audit.log_invitation_cancelled.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resend_each(
        self,
        service: InvitationManagementService,
        invitations: AsyncMock,
        audit: AsyncMock,
        tenant_id: UUID,
        user_id: UUID,
    ) -> None:
        ids = [uuid4(), uuid4()]
        invitations.resend_invitation.side_effect = lambda *args: make_invitation(tenant_id)

        result = await service.resend_bulk_invitations(tenant_id, ids, user_id)

        assert result.summary["successful"] == 2
        assert invitations.resend_invitation.await_count == 2
        audit.log_invitation_resent.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_cap(
        self, service: InvitationManagementService, tenant_id: UUID, user_id: UUID
    ) -> None:
        with pytest.raises(BulkLimitError) as exc_info:
            await service.resend_bulk_invitations(tenant_id, [uuid4() for _ in range(51)], user_id)

        assert exc_info.value.message == "Cannot resend more than 50 invitations at once"

    @pytest.mark.asyncio
    async def test_empty_ids(
        self, service: InvitationManagementService, tenant_id: UUID, user_id: UUID
    ) -> None:
        with pytest.raises(BulkLimitError):
            await service.cancel_bulk_invitations(tenant_id, [], user_id)


# --- statistics ---


class TestStatistics:
    @pytest.mark.asyncio
    async def test_rates_and_rankings(
        self, service: InvitationManagementService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        uow.invitations.count_by_status.return_value = {
            InvitationStatus.PENDING: 4,
            InvitationStatus.ACCEPTED: 3,
            InvitationStatus.EXPIRED: 2,
            InvitationStatus.CANCELLED: 1,
        }
        # last24h, last7d, last30d, accepted30d, expiringSoon, expiredRecently
        uow.invitations.count.side_effect = [1, 5, 6, 2, 1, 2]
        uow.invitations.top_inviters.return_value = [
            GroupCount(id=uuid4(), label="admin@acme.test", count=7),
            GroupCount(id=uuid4(), label=None, count=3),
        ]
        uow.invitations.role_distribution.return_value = [
            GroupCount(id=uuid4(), label="Member", count=9)
        ]

        stats = await service.get_invitation_statistics(tenant_id)

        assert stats.overview.total == 10
        assert stats.overview.pending == 4
        assert stats.acceptance_rate_overall == 30.0
        assert stats.acceptance_rate_last_30_days == 33.33
        assert stats.last_24_hours == 1
        assert stats.last_30_days == 6
        assert stats.top_inviters[0].inviter_email == "admin@acme.test"
        assert stats.top_inviters[1].inviter_email == "Unknown"
        assert stats.role_distribution[0].role_name == "Member"
        assert stats.expiring_soon == 1
        assert stats.expired_recently == 2

    @pytest.mark.asyncio
    async def test_empty_tenant_has_zero_rates(
        self, service: InvitationManagementService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        uow.invitations.count_by_status.return_value = {}
        uow.invitations.count.return_value = 0
        uow.invitations.top_inviters.return_value = []
        uow.invitations.role_distribution.return_value = []

        stats = await service.get_invitation_statistics(tenant_id)

        assert stats.overview.total == 0
        assert stats.acceptance_rate_overall == 0.0
        assert stats.acceptance_rate_last_30_days == 0.0


# --- reports ---


class TestReports:
    @pytest.mark.asyncio
    async def test_report_rows_and_summary(
        self, service: InvitationManagementService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        uow.invitations.list_all_for_tenant.return_value = [
            make_invitation(tenant_id, email="b@x.com"),
            make_invitation(
                tenant_id,
                email="a@x.com",
                status=InvitationStatus.ACCEPTED,
                accepted_at=datetime(2024, 1, 2, 3, 4, 5),
            ),
        ]

        report = await service.generate_invitation_report(
            tenant_id, ReportOptions(include_expired=False)
        )

        criteria = uow.invitations.list_all_for_tenant.await_args.args[1]
        assert criteria.exclude_expired is True
        assert report.summary.total == 2
        assert report.summary.accepted == 1
        assert report.invitations[0].email == "b@x.com"
        assert report.invitations[0].inviter_email == "admin@acme.test"
        assert report.invitations[0].roles == ["Member"]

    @pytest.mark.asyncio
    async def test_missing_inviter_is_unknown(
        self, service: InvitationManagementService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        uow.invitations.list_all_for_tenant.return_value = [make_invitation(tenant_id, inviter=None)]

        report = await service.generate_invitation_report(tenant_id)

        assert report.invitations[0].inviter_email == "Unknown"

    @pytest.mark.asyncio
    async def test_csv_export_quotes_every_field(
        self,
        service: InvitationManagementService,
        uow: FakeUnitOfWork,
        audit: AsyncMock,
        tenant_id: UUID,
        user_id: UUID,
    ) -> None:
        invitation = make_invitation(tenant_id, email='we"ird@x.com')
        uow.invitations.list_all_for_tenant.return_value = [invitation]

        content = await service.export_invitation_report_as_csv(tenant_id, actor_id=user_id)

        lines = content.splitlines()
        assert lines[0] == ",".join(f'"{header}"' for header in CSV_HEADERS)
        assert '"we""ird@x.com"' in lines[1]
        rows = list(csv.reader(io.StringIO(content)))
        assert rows[1][0] == str(invitation.id)
        assert rows[1][1] == 'we"ird@x.com'
        assert rows[1][5] == ""
        assert rows[1][8] == "Member"

        entry = audit.log_event.await_args.args[0]
        assert entry.action == AuditActions.EXPORTED
        assert entry.user_id == user_id
        assert entry.metadata["record_count"] == 1


# --- activity summary ---


class TestActivitySummary:
    @pytest.mark.asyncio
    async def test_seven_day_trend_oldest_first(
        self, service: InvitationManagementService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        uow.invitations.count.return_value = 2

        summary = await service.get_invitation_activity_summary(tenant_id)

        assert len(summary.weekly_trend) == 7
        dates = [day.date for day in summary.weekly_trend]
        assert dates == sorted(dates)
        assert dates[-1] == datetime.utcnow().date().isoformat()
        assert summary.today_created == 2
        assert summary.needing_resend == 2
        # 3 today counts + 7 days * 2 + expiring soon + needing resend
        assert uow.invitations.count.await_count == 19
