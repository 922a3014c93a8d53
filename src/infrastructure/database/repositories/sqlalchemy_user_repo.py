"""SQLAlchemy implementation of User repository."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import UserAlreadyExistsError
from domain.entities.tenant import Role
from domain.entities.user import User
from infrastructure.database.models import RoleModel, UserModel, UserRoleModel
from infrastructure.database.repositories.sqlalchemy_tenant_repo import to_role


class SQLAlchemyUserRepository:
    """SQLAlchemy implementation of IUserRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, id: UUID, tenant_id: UUID) -> User | None:
        stmt = select(UserModel).where(UserModel.id == id, UserModel.tenant_id == tenant_id)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_email(self, tenant_id: UUID, email: str) -> User | None:
        stmt = select(UserModel).where(
            UserModel.tenant_id == tenant_id,
            UserModel.email == email,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def create(self, user: User) -> User:
        model = self._to_model(user)
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise UserAlreadyExistsError(user.email) from exc
        await self._session.refresh(model)
        return self._to_entity(model)

    async def update(self, user: User) -> User:
        model = await self._session.get(UserModel, user.id)
        if not model or model.tenant_id != user.tenant_id:
            raise ValueError(f"User {user.id} not found")

        model.first_name = user.first_name
        model.last_name = user.last_name
        model.google_id = user.google_id
        model.google_linked_at = user.google_linked_at
        model.auth_methods = list(user.auth_methods)
        model.email_verified = user.email_verified
        model.email_verification_code_hash = user.email_verification_code_hash
        model.email_verification_expires_at = user.email_verification_expires_at
        model.updated_at = user.updated_at
        await self._session.flush()
        return self._to_entity(model)

    async def assign_roles(self, user_id: UUID, role_ids: list[UUID]) -> None:
        self._session.add_all(
            UserRoleModel(user_id=user_id, role_id=role_id) for role_id in dict.fromkeys(role_ids)
        )
        await self._session.flush()

    async def get_roles(self, user_id: UUID, tenant_id: UUID) -> list[Role]:
        stmt = (
            select(RoleModel)
            .join(UserRoleModel, UserRoleModel.role_id == RoleModel.id)
            .join(UserModel, UserModel.id == UserRoleModel.user_id)
            .where(UserModel.id == user_id, UserModel.tenant_id == tenant_id)
            .order_by(RoleModel.name)
        )
        result = await self._session.execute(stmt)
        return [to_role(model) for model in result.scalars()]

    def _to_entity(self, model: UserModel) -> User:
        """Convert ORM model to domain entity."""
        return User(
            id=model.id,
            tenant_id=model.tenant_id,
            email=model.email,
            first_name=model.first_name,
            last_name=model.last_name,
            password_hash=model.password_hash,
            google_id=model.google_id,
            google_linked_at=model.google_linked_at,
            auth_methods=list(model.auth_methods or []),
            email_verified=model.email_verified,
            email_verification_code_hash=model.email_verification_code_hash,
            email_verification_expires_at=model.email_verification_expires_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: User) -> UserModel:
        """Convert domain entity to ORM model."""
        return UserModel(
            id=entity.id,
            tenant_id=entity.tenant_id,
            email=entity.email,
            first_name=entity.first_name,
            last_name=entity.last_name,
            password_hash=entity.password_hash,
            google_id=entity.google_id,
            google_linked_at=entity.google_linked_at,
            auth_methods=list(entity.auth_methods),
            email_verified=entity.email_verified,
            email_verification_code_hash=entity.email_verification_code_hash,
            email_verification_expires_at=entity.email_verification_expires_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
