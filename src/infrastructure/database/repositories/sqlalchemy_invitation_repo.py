"""SQLAlchemy implementation of Invitation repository."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.exceptions import DuplicateInvitationError, InvitationNotFoundError
from domain.entities.invitation import (
    Invitation,
    InvitationStatus,
    InviterSummary,
    RoleSummary,
    TenantSummary,
)
from domain.repositories.invitation_repository import (
    GroupCount,
    InvitationCriteria,
    SortField,
    SortOrder,
)
from infrastructure.database.models import (
    RoleModel,
    TenantInvitationModel,
    TenantInvitationRoleModel,
    UserModel,
)

PENDING_EMAIL_INDEX = "uq_tenant_invitations_pending_email"

SORT_COLUMNS = {
    "createdAt": TenantInvitationModel.created_at,
    "expiresAt": TenantInvitationModel.expires_at,
    "email": TenantInvitationModel.email,
    "status": TenantInvitationModel.status,
}


def _is_pending_email_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return PENDING_EMAIL_INDEX in message or (
        "tenant_invitations.tenant_id" in message and "tenant_invitations.email" in message
    )


class SQLAlchemyInvitationRepository:
    """SQLAlchemy implementation of IInvitationRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, invitation: Invitation) -> Invitation:
        """Insert the invitation and its role rows in the current transaction."""
        self._session.add(self._to_model(invitation))
        try:
            await self._session.flush()
        except IntegrityError as exc:
            if _is_pending_email_conflict(exc):
                raise DuplicateInvitationError(invitation.email) from exc
            raise

        self._session.add_all(
            TenantInvitationRoleModel(invitation_id=invitation.id, role_id=role_id)
            for role_id in invitation.role_ids
        )
        await self._session.flush()
        return await self._reload(invitation.id)

    async def get_by_token(self, token: str) -> Invitation | None:
        stmt = self._select().where(TenantInvitationModel.token == token)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_for_tenant(self, invitation_id: UUID, tenant_id: UUID) -> Invitation | None:
        stmt = self._select().where(
            TenantInvitationModel.id == invitation_id,
            TenantInvitationModel.tenant_id == tenant_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_pending_for_tenant_email(
        self, tenant_id: UUID, email: str
    ) -> Invitation | None:
        stmt = self._select().where(
            TenantInvitationModel.tenant_id == tenant_id,
            TenantInvitationModel.email == email,
            TenantInvitationModel.status == InvitationStatus.PENDING.value,
        )
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return self._to_entity(model) if model else None

    async def list_for_tenant(
        self,
        tenant_id: UUID,
        criteria: InvitationCriteria,
        sort_by: SortField = "createdAt",
        sort_order: SortOrder = "desc",
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Invitation], int]:
        conditions = self._conditions(tenant_id, criteria)

        count_stmt = select(func.count()).select_from(TenantInvitationModel).where(*conditions)
        total = (await self._session.execute(count_stmt)).scalar_one()

        column = SORT_COLUMNS.get(sort_by, TenantInvitationModel.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        stmt = (
            self._select()
            .where(*conditions)
            .order_by(ordering, TenantInvitationModel.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()], total

    async def list_all_for_tenant(
        self, tenant_id: UUID, criteria: InvitationCriteria
    ) -> list[Invitation]:
        stmt = (
            self._select()
            .where(*self._conditions(tenant_id, criteria))
            .order_by(TenantInvitationModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    async def update(self, invitation: Invitation) -> Invitation:
        model = await self._session.get(TenantInvitationModel, invitation.id)
        if not model or model.tenant_id != invitation.tenant_id:
            raise InvitationNotFoundError(str(invitation.id))

        model.status = invitation.status.value
        model.token = invitation.token
        model.expires_at = invitation.expires_at
        model.accepted_at = invitation.accepted_at
        model.cancelled_at = invitation.cancelled_at
        model.message = invitation.message
        model.updated_at = invitation.updated_at
        await self._session.flush()
        return await self._reload(invitation.id)

    async def accept_if_pending(self, invitation_id: UUID, now: datetime) -> bool:
        return await self._transition_if_pending(
            invitation_id,
            status=InvitationStatus.ACCEPTED.value,
            accepted_at=now,
            updated_at=now,
        )

    async def mark_expired_if_pending(self, invitation_id: UUID, now: datetime) -> bool:
        return await self._transition_if_pending(
            invitation_id,
            status=InvitationStatus.EXPIRED.value,
            updated_at=now,
        )

    async def count(self, tenant_id: UUID, criteria: InvitationCriteria) -> int:
        stmt = (
            select(func.count())
            .select_from(TenantInvitationModel)
            .where(*self._conditions(tenant_id, criteria))
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_by_status(self, tenant_id: UUID) -> dict[InvitationStatus, int]:
        stmt = (
            select(TenantInvitationModel.status, func.count().label("count"))
            .where(TenantInvitationModel.tenant_id == tenant_id)
            .group_by(TenantInvitationModel.status)
        )
        result = await self._session.execute(stmt)
        return {InvitationStatus(row.status): row.count for row in result}

    async def top_inviters(self, tenant_id: UUID, limit: int) -> list[GroupCount]:
        invitation_count = func.count(TenantInvitationModel.id).label("count")
        stmt = (
            select(TenantInvitationModel.invited_by, UserModel.email, invitation_count)
            .outerjoin(UserModel, UserModel.id == TenantInvitationModel.invited_by)
            .where(TenantInvitationModel.tenant_id == tenant_id)
            .group_by(TenantInvitationModel.invited_by, UserModel.email)
            .order_by(invitation_count.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [GroupCount(id=row.invited_by, label=row.email, count=row.count) for row in result]

    async def role_distribution(self, tenant_id: UUID, limit: int) -> list[GroupCount]:
        assignment_count = func.count().label("count")
        stmt = (
            select(TenantInvitationRoleModel.role_id, RoleModel.name, assignment_count)
            .join(
                TenantInvitationModel,
                TenantInvitationModel.id == TenantInvitationRoleModel.invitation_id,
            )
            .outerjoin(RoleModel, RoleModel.id == TenantInvitationRoleModel.role_id)
            .where(TenantInvitationModel.tenant_id == tenant_id)
            .group_by(TenantInvitationRoleModel.role_id, RoleModel.name)
            .order_by(assignment_count.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [GroupCount(id=row.role_id, label=row.name, count=row.count) for row in result]

    async def find_expired_pending(self, now: datetime) -> list[Invitation]:
        stmt = self._select().where(
            TenantInvitationModel.status == InvitationStatus.PENDING.value,
            TenantInvitationModel.expires_at <= now,
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    async def count_expired_pending(self, now: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(TenantInvitationModel)
            .where(
                TenantInvitationModel.status == InvitationStatus.PENDING.value,
                TenantInvitationModel.expires_at <= now,
            )
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_created_for_email_since(self, email: str, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(TenantInvitationModel)
            .where(
                TenantInvitationModel.email == email,
                TenantInvitationModel.created_at >= since,
            )
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def find_cleanup_candidates(
        self,
        accepted_before: datetime,
        expired_created_before: datetime,
        cancelled_before: datetime,
    ) -> list[Invitation]:
        stmt = self._select().where(
            or_(
                and_(
                    TenantInvitationModel.status == InvitationStatus.ACCEPTED.value,
                    TenantInvitationModel.accepted_at <= accepted_before,
                ),
                and_(
                    TenantInvitationModel.status == InvitationStatus.EXPIRED.value,
                    TenantInvitationModel.created_at <= expired_created_before,
                ),
                and_(
                    TenantInvitationModel.status == InvitationStatus.CANCELLED.value,
                    TenantInvitationModel.cancelled_at <= cancelled_before,
                ),
            )
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    async def delete_many(self, invitation_ids: list[UUID]) -> int:
        if not invitation_ids:
            return 0
        await self._session.execute(
            delete(TenantInvitationRoleModel).where(
                TenantInvitationRoleModel.invitation_id.in_(invitation_ids)
            )
        )
        result = await self._session.execute(
            delete(TenantInvitationModel).where(TenantInvitationModel.id.in_(invitation_ids))
        )
        await self._session.flush()
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    # --- Helpers ---

    def _select(self) -> Select[tuple[TenantInvitationModel]]:
        return select(TenantInvitationModel).options(
            selectinload(TenantInvitationModel.tenant),
            selectinload(TenantInvitationModel.inviter),
            selectinload(TenantInvitationModel.roles),
        )

    async def _reload(self, invitation_id: UUID) -> Invitation:
        stmt = (
            self._select()
            .where(TenantInvitationModel.id == invitation_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return self._to_entity(result.scalar_one())

    async def _transition_if_pending(self, invitation_id: UUID, **values: Any) -> bool:
        stmt = (
            update(TenantInvitationModel)
            .where(
                TenantInvitationModel.id == invitation_id,
                TenantInvitationModel.status == InvitationStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount == 1  # type: ignore[attr-defined, no-any-return]

    def _conditions(self, tenant_id: UUID, criteria: InvitationCriteria) -> list[Any]:
        model = TenantInvitationModel
        conditions: list[Any] = [model.tenant_id == tenant_id]
        if criteria.status is not None:
            conditions.append(model.status == criteria.status.value)
        if criteria.exclude_expired:
            conditions.append(model.status != InvitationStatus.EXPIRED.value)
        if criteria.email_contains:
            conditions.append(
                func.lower(model.email).contains(criteria.email_contains.lower(), autoescape=True)
            )
        if criteria.invited_by is not None:
            conditions.append(model.invited_by == criteria.invited_by)

        ranges = (
            (model.created_at, criteria.created_from, criteria.created_to),
            (model.accepted_at, criteria.accepted_from, criteria.accepted_to),
            (model.expires_at, criteria.expires_from, criteria.expires_to),
        )
        for column, lower, upper in ranges:
            if lower is not None:
                conditions.append(column >= lower)
            if upper is not None:
                conditions.append(column <= upper)
        return conditions

    def _to_entity(self, model: TenantInvitationModel) -> Invitation:
        """Convert ORM model to domain entity."""
        roles = [RoleSummary(id=role.id, name=role.name) for role in model.roles]
        return Invitation(
            id=model.id,
            tenant_id=model.tenant_id,
            email=model.email,
            token=model.token,
            invited_by=model.invited_by,
            status=InvitationStatus(model.status),
            message=model.message,
            expires_at=model.expires_at,
            accepted_at=model.accepted_at,
            cancelled_at=model.cancelled_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
            role_ids=[role.id for role in roles],
            roles=roles,
            tenant=TenantSummary(
                id=model.tenant.id,
                name=model.tenant.name,
                subdomain=model.tenant.subdomain,
            )
            if model.tenant
            else None,
            inviter=InviterSummary(
                id=model.inviter.id,
                email=model.inviter.email,
                first_name=model.inviter.first_name,
                last_name=model.inviter.last_name,
            )
            if model.inviter
            else None,
        )

    def _to_model(self, entity: Invitation) -> TenantInvitationModel:
        """Convert domain entity to ORM model."""
        return TenantInvitationModel(
            id=entity.id,
            tenant_id=entity.tenant_id,
            email=entity.email,
            token=entity.token,
            invited_by=entity.invited_by,
            status=entity.status.value,
            message=entity.message,
            expires_at=entity.expires_at,
            accepted_at=entity.accepted_at,
            cancelled_at=entity.cancelled_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
