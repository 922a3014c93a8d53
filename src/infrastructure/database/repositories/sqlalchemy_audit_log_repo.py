"""SQLAlchemy implementation of AuditLog repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.audit import AuditLogEntry
from infrastructure.database.models import InvitationAuditLogModel


class SQLAlchemyAuditLogRepository:
    """SQLAlchemy implementation of IAuditLogRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        model = self._to_model(entry)
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def list_for_invitation(
        self, invitation_id: UUID, tenant_id: UUID, limit: int = 50
    ) -> list[AuditLogEntry]:
        stmt = (
            select(InvitationAuditLogModel)
            .where(
                InvitationAuditLogModel.invitation_id == invitation_id,
                InvitationAuditLogModel.tenant_id == tenant_id,
            )
            .order_by(InvitationAuditLogModel.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    async def list_for_tenant(
        self,
        tenant_id: UUID,
        limit: int = 100,
        offset: int = 0,
        action: str | None = None,
    ) -> list[AuditLogEntry]:
        stmt = select(InvitationAuditLogModel).where(InvitationAuditLogModel.tenant_id == tenant_id)
        if action:
            stmt = stmt.where(InvitationAuditLogModel.action == action)
        stmt = stmt.order_by(InvitationAuditLogModel.created_at.desc()).offset(offset).limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    async def list_by_actions(
        self,
        actions: tuple[str, ...],
        since: datetime,
        tenant_id: UUID | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        stmt = select(InvitationAuditLogModel).where(
            InvitationAuditLogModel.action.in_(actions),
            InvitationAuditLogModel.created_at >= since,
        )
        if tenant_id is not None:
            stmt = stmt.where(InvitationAuditLogModel.tenant_id == tenant_id)
        stmt = stmt.order_by(InvitationAuditLogModel.created_at.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    async def list_since(self, tenant_id: UUID, since: datetime) -> list[AuditLogEntry]:
        stmt = select(InvitationAuditLogModel).where(
            InvitationAuditLogModel.tenant_id == tenant_id,
            InvitationAuditLogModel.created_at >= since,
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    async def delete_for_invitations(self, invitation_ids: list[UUID]) -> int:
        if not invitation_ids:
            return 0
        result = await self._session.execute(
            delete(InvitationAuditLogModel).where(
                InvitationAuditLogModel.invitation_id.in_(invitation_ids)
            )
        )
        await self._session.flush()
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self._session.execute(
            delete(InvitationAuditLogModel).where(InvitationAuditLogModel.created_at < cutoff)
        )
        await self._session.flush()
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    def _to_entity(self, model: InvitationAuditLogModel) -> AuditLogEntry:
        """Convert ORM model to domain entity."""
        return AuditLogEntry(
            id=model.id,
            invitation_id=model.invitation_id,
            tenant_id=model.tenant_id,
            action=model.action,
            user_id=model.user_id,
            ip_address=model.ip_address,
            user_agent=model.user_agent,
            success=model.success,
            error_code=model.error_code,
            error_message=model.error_message,
            metadata=model.metadata_ or {},
            created_at=model.created_at,
        )

    def _to_model(self, entity: AuditLogEntry) -> InvitationAuditLogModel:
        """Convert domain entity to ORM model."""
        return InvitationAuditLogModel(
            id=entity.id,
            invitation_id=entity.invitation_id,
            tenant_id=entity.tenant_id,
            action=entity.action,
            user_id=entity.user_id,
            ip_address=entity.ip_address,
            user_agent=entity.user_agent,
            success=entity.success,
            error_code=entity.error_code,
            error_message=entity.error_message,
            metadata_=entity.metadata or None,
            created_at=entity.created_at,
        )
