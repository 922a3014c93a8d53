"""Authentication provider protocol."""

from dataclasses import dataclass, field
from typing import Optional, Protocol
from uuid import UUID


@dataclass
class TokenUser:
    """Represents a user extracted from a session token."""

    id: UUID
    email: str
    tenant_id: UUID
    role_ids: list[UUID] = field(default_factory=list)


class IAuthProvider(Protocol):
    """Protocol for authentication providers."""

    async def validate_token(self, token: str) -> Optional[TokenUser]:
        """
        Validate a session token.

        Args:
            token: The bearer token to validate

        Returns:
            TokenUser if valid, None if invalid
        """
        ...

    def create_access_token(
        self, user_id: UUID, tenant_id: UUID, role_ids: list[UUID], email: str
    ) -> str:
        """
        Issue a session token for a tenant user.

        Returns:
            The generated token string
        """
        ...
