"""Email verification codes for users who joined with a password."""

import hashlib
import hmac
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

import structlog

from domain.entities.user import User
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.notification_service import EmailMessage, IEmailSender

logger = structlog.get_logger()

VERIFICATION_CODE_DIGITS = 6


def generate_verification_code() -> str:
    return f"{secrets.randbelow(10**VERIFICATION_CODE_DIGITS):0{VERIFICATION_CODE_DIGITS}d}"


def hash_verification_code(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()


class EmailVerificationService:
    """Issues and checks one-time email verification codes.

    Only the SHA-256 digest of a code is stored.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        sender: IEmailSender,
        ttl_minutes: int = 15,
    ) -> None:
        self._uow_factory = uow_factory
        self._sender = sender
        self._ttl = timedelta(minutes=ttl_minutes)

    async def send_verification_code(self, user: User) -> None:
        """Store a fresh code for the user and email it."""
        code = generate_verification_code()
        now = datetime.utcnow()

        async with self._uow_factory() as uow:
            user.email_verification_code_hash = hash_verification_code(code)
            user.email_verification_expires_at = now + self._ttl
            user.updated_at = now
            await uow.users.update(user)
            await uow.commit()

        await self._sender.send(
            EmailMessage(
                to=user.email,
                subject="Verify your email address",
                text=(
                    f"Your verification code is {code}. "
                    f"It expires in {int(self._ttl.total_seconds() // 60)} minutes."
                ),
            )
        )
        logger.info("email_verification_code_sent", user_id=str(user.id))

    async def verify_code(self, user_id: UUID, tenant_id: UUID, code: str) -> bool:
        """Mark the user verified if the code matches and has not expired."""
        now = datetime.utcnow()

        async with self._uow_factory() as uow:
            user = await uow.users.get(user_id, tenant_id)
            if (
                not user
                or not user.email_verification_code_hash
                or not user.email_verification_expires_at
                or user.email_verification_expires_at <= now
            ):
                return False

            if not hmac.compare_digest(
                hash_verification_code(code), user.email_verification_code_hash
            ):
                logger.warning("email_verification_code_mismatch", user_id=str(user_id))
                return False

            user.email_verified = True
            user.email_verification_code_hash = None
            user.email_verification_expires_at = None
            user.updated_at = now
            await uow.users.update(user)
            await uow.commit()

        logger.info("email_verified", user_id=str(user_id))
        return True
