"""Tenant user domain entity."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4


class AuthMethod(StrEnum):
    """How an invited user authenticates."""

    GOOGLE = "google"
    PASSWORD = "password"


@dataclass
class User:
    """Domain entity for a user belonging to exactly one tenant."""

    tenant_id: UUID
    email: str
    id: UUID = field(default_factory=uuid4)
    first_name: str | None = None
    last_name: str | None = None
    password_hash: str = ""
    google_id: str | None = None
    google_linked_at: datetime | None = None
    auth_methods: list[str] = field(default_factory=list)
    email_verified: bool = False
    email_verification_code_hash: str | None = None
    email_verification_expires_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
