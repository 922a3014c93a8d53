"""Unit tests for InvitationAuditService."""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

import pytest

from domain.entities.audit import AuditActions, AuditLogEntry
from domain.services.audit_service import SECURITY_ACTIONS, InvitationAuditService
from tests.unit.conftest import FakeUnitOfWork


@pytest.fixture
def service(uow: FakeUnitOfWork) -> InvitationAuditService:
    return InvitationAuditService(lambda: uow)


def written(uow: FakeUnitOfWork) -> AuditLogEntry:
    entry: AuditLogEntry = uow.audit_logs.add.await_args.args[0]
    return entry


class TestWrites:
    @pytest.mark.asyncio
    async def test_log_event_commits_own_unit_of_work(
        self, service: InvitationAuditService, uow: FakeUnitOfWork
    ) -> None:
        await service.log_event(AuditLogEntry(action=AuditActions.CREATED))

        uow.audit_logs.add.assert_awaited_once()
        assert uow.committed

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(
        self, service: InvitationAuditService, uow: FakeUnitOfWork
    ) -> None:
        uow.audit_logs.add.side_effect = RuntimeError("disk full")

        await service.log_event(AuditLogEntry(action=AuditActions.CREATED))

        assert not uow.committed

    @pytest.mark.asyncio
    async def test_failed_validation_uses_failure_action(
        self, service: InvitationAuditService, uow: FakeUnitOfWork
    ) -> None:
        await service.log_invitation_validated(
            invitation_id=None,
            tenant_id=None,
            success=False,
            error_message="Token not found",
        )

        entry = written(uow)
        assert entry.action == AuditActions.VALIDATION_FAILED
        assert entry.success is False
        assert entry.error_code == "VALIDATION_FAILED"
        assert entry.error_message == "Token not found"

    @pytest.mark.asyncio
    async def test_successful_validation(
        self, service: InvitationAuditService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        invitation_id = uuid4()
        await service.log_invitation_validated(
            invitation_id=invitation_id, tenant_id=tenant_id, success=True
        )

        entry = written(uow)
        assert entry.action == AuditActions.VALIDATED
        assert entry.invitation_id == invitation_id
        assert entry.error_code is None

    @pytest.mark.asyncio
    async def test_security_event_metadata(
        self, service: InvitationAuditService, uow: FakeUnitOfWork
    ) -> None:
        await service.log_security_event(
            "Invalid token format", ip_address="10.0.0.1", metadata={"token": "abcd1234..."}
        )

        entry = written(uow)
        assert entry.action == AuditActions.VALIDATION_FAILED
        assert entry.error_code == "SECURITY_EVENT"
        assert entry.metadata == {
            "security_event": "Invalid token format",
            "token": "abcd1234...",
        }
        assert entry.ip_address == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_rate_limit_entry(self, service: InvitationAuditService, uow: FakeUnitOfWork) -> None:
        await service.log_rate_limit_exceeded(ip_address="10.0.0.2", metadata={"path": "/x"})

        entry = written(uow)
        assert entry.action == AuditActions.RATE_LIMIT_EXCEEDED
        assert entry.success is False

    @pytest.mark.asyncio
    async def test_sent_failure_sets_error_code(
        self, service: InvitationAuditService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        await service.log_invitation_sent(
            invitation_id=uuid4(), tenant_id=tenant_id, success=False, error_message="boom"
        )

        assert written(uow).error_code == "EMAIL_SEND_FAILED"


class TestQueries:
    @pytest.mark.asyncio
    async def test_statistics(
        self, service: InvitationAuditService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        uow.audit_logs.list_since.return_value = [
            AuditLogEntry(action=AuditActions.CREATED),
            AuditLogEntry(action=AuditActions.VALIDATED),
            AuditLogEntry(action=AuditActions.VALIDATION_FAILED, success=False),
            AuditLogEntry(action=AuditActions.RATE_LIMIT_EXCEEDED, success=False),
        ]

        stats = await service.get_audit_statistics(tenant_id)

        assert stats.total_events == 4
        assert stats.events_by_action[AuditActions.CREATED] == 1
        assert stats.security_events == 2
        assert stats.failed_events == 2
        assert stats.success_rate == 50.0

    @pytest.mark.asyncio
    async def test_statistics_with_no_activity(
        self, service: InvitationAuditService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        uow.audit_logs.list_since.return_value = []

        stats = await service.get_audit_statistics(tenant_id)

        assert stats.total_events == 0
        assert stats.success_rate == 100.0

    @pytest.mark.asyncio
    async def test_security_events_window(
        self, service: InvitationAuditService, uow: FakeUnitOfWork, tenant_id: UUID
    ) -> None:
        uow.audit_logs.list_by_actions.return_value = []

        await service.get_security_events(tenant_id, hours_back=6)

        args = uow.audit_logs.list_by_actions.await_args
        assert args.args[0] == SECURITY_ACTIONS
        assert datetime.utcnow() - args.args[1] >= timedelta(hours=6)
        assert args.kwargs["tenant_id"] == tenant_id

    @pytest.mark.asyncio
    async def test_retention_cleanup(
        self, service: InvitationAuditService, uow: FakeUnitOfWork
    ) -> None:
        uow.audit_logs.delete_older_than.return_value = 12

        assert await service.cleanup_old_audit_logs(30) == 12

        cutoff = uow.audit_logs.delete_older_than.await_args.args[0]
        assert datetime.utcnow() - cutoff >= timedelta(days=30)
        assert uow.committed
