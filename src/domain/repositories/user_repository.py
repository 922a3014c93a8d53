"""User repository protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.tenant import Role
from domain.entities.user import User


class IUserRepository(Protocol):
    """Repository interface for tenant-scoped User entities."""

    async def get(self, id: UUID, tenant_id: UUID) -> User | None:
        """Get a user of the tenant by ID."""
        ...

    async def get_by_email(self, tenant_id: UUID, email: str) -> User | None:
        """Get a user of the tenant by email."""
        ...

    async def create(self, user: User) -> User:
        """Create a user."""
        ...

    async def update(self, user: User) -> User:
        """Persist profile, verification and linked-account fields."""
        ...

    async def assign_roles(self, user_id: UUID, role_ids: list[UUID]) -> None:
        """Grant roles to a user."""
        ...

    async def get_roles(self, user_id: UUID, tenant_id: UUID) -> list[Role]:
        """Roles currently granted to a user of the tenant."""
        ...
