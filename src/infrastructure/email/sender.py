"""Email delivery adapters."""

from uuid import uuid4

import structlog

from domain.services.notification_service import EmailMessage

logger = structlog.get_logger()


class LoggingEmailSender:
    """Email sender that records messages in the log instead of delivering them.

    Used in development and tests. Production wires a provider-backed sender
    implementing the same ``send`` contract.
    """

    def __init__(self, from_address: str) -> None:
        self._from_address = from_address

    async def send(self, message: EmailMessage) -> str:
        message_id = str(uuid4())
        logger.info(
            "email_sent",
            message_id=message_id,
            from_address=self._from_address,
            to=message.to,
            subject=message.subject,
        )
        return message_id
