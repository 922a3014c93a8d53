"""JWT session token provider.

Session token payload structure:
    {
        "sub": "user-uuid",
        "userId": "user-uuid",
        "tenantId": "tenant-uuid",
        "roles": ["role-uuid", ...],
        "email": "user@example.com",
        "exp": 1234567890
    }
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from core.config import settings
from infrastructure.auth.provider import TokenUser

logger = logging.getLogger(__name__)


class JWTAuthProvider:
    """HS256 JWT provider for tenant user sessions."""

    def __init__(
        self,
        secret_key: str = settings.jwt_secret_key,
        algorithm: str = settings.jwt_algorithm,
        expire_minutes: int = settings.jwt_expire_minutes,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    async def validate_token(self, token: str) -> Optional[TokenUser]:
        """
        Validate a JWT and extract the tenant user.

        Args:
            token: The JWT to validate

        Returns:
            TokenUser if valid, None if invalid, expired or missing claims
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError:
            return None

        user_id = payload.get("userId") or payload.get("sub")
        tenant_id = payload.get("tenantId")
        email = payload.get("email")
        if not user_id or not tenant_id or not email:
            return None

        try:
            return TokenUser(
                id=UUID(user_id),
                email=email,
                tenant_id=UUID(tenant_id),
                role_ids=[UUID(role_id) for role_id in payload.get("roles") or []],
            )
        except (TypeError, ValueError):
            logger.warning("Rejected token with malformed identifiers")
            return None

    def create_access_token(
        self, user_id: UUID, tenant_id: UUID, role_ids: list[UUID], email: str
    ) -> str:
        """
        Create a session JWT for a tenant user.

        Args:
            user_id: The user the session belongs to
            tenant_id: The user's tenant
            role_ids: Roles granted to the user
            email: The user's email

        Returns:
            The generated JWT string
        """
        expire = datetime.utcnow() + timedelta(minutes=self._expire_minutes)

        payload: dict = {
            "sub": str(user_id),
            "userId": str(user_id),
            "tenantId": str(tenant_id),
            "roles": [str(role_id) for role_id in role_ids],
            "email": email,
            "exp": expire,
        }

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
