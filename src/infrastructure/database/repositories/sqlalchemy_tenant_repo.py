"""SQLAlchemy implementations of Tenant and Role repositories."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.tenant import Role, Tenant
from infrastructure.database.models import RoleModel, TenantModel


class SQLAlchemyTenantRepository:
    """SQLAlchemy implementation of ITenantRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, id: UUID) -> Tenant | None:
        model = await self._session.get(TenantModel, id)
        if not model:
            return None
        return Tenant(
            id=model.id,
            name=model.name,
            subdomain=model.subdomain,
            google_sso_enabled=model.google_sso_enabled,
            created_at=model.created_at,
        )


class SQLAlchemyRoleRepository:
    """SQLAlchemy implementation of IRoleRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_many_for_tenant(self, tenant_id: UUID, role_ids: list[UUID]) -> list[Role]:
        if not role_ids:
            return []
        stmt = select(RoleModel).where(
            RoleModel.tenant_id == tenant_id,
            RoleModel.id.in_(role_ids),
        )
        result = await self._session.execute(stmt)
        return [to_role(model) for model in result.scalars()]

    async def get_by_name(self, tenant_id: UUID, name: str) -> Role | None:
        stmt = select(RoleModel).where(
            RoleModel.tenant_id == tenant_id,
            RoleModel.name == name,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return to_role(model) if model else None


def to_role(model: RoleModel) -> Role:
    return Role(
        id=model.id,
        tenant_id=model.tenant_id,
        name=model.name,
        description=model.description,
    )
