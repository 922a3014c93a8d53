"""Tenant and role repository protocols."""

from typing import Protocol
from uuid import UUID

from domain.entities.tenant import Role, Tenant


class ITenantRepository(Protocol):
    """Repository interface for Tenant entities."""

    async def get(self, id: UUID) -> Tenant | None:
        """Get a tenant by ID."""
        ...


class IRoleRepository(Protocol):
    """Repository interface for tenant-scoped Role entities."""

    async def get_many_for_tenant(self, tenant_id: UUID, role_ids: list[UUID]) -> list[Role]:
        """Get the subset of role IDs that belong to the tenant."""
        ...

    async def get_by_name(self, tenant_id: UUID, name: str) -> Role | None:
        """Get a tenant role by its name."""
        ...
