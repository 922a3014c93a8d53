"""Tenant and role domain entities."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

DEFAULT_MEMBER_ROLE_NAME = "Member"


@dataclass
class Tenant:
    """An isolated organization whose data is scoped off from other tenants."""

    name: str
    id: UUID = field(default_factory=uuid4)
    subdomain: str | None = None
    google_sso_enabled: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Role:
    """A tenant-owned role that can be granted to users."""

    tenant_id: UUID
    name: str
    id: UUID = field(default_factory=uuid4)
    description: str | None = None
