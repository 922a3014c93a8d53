"""Fire-and-forget wrapper for side channels (audit, email, notifications)."""

from collections.abc import Awaitable
from typing import Any

import structlog

from core.logging import error_summary

logger = structlog.get_logger()


async def best_effort(action: str, awaitable: Awaitable[Any], **context: Any) -> None:
    """Await a side-channel call, logging and discarding any failure.

    The primary operation never sees the exception.
    """
    try:
        await awaitable
    except Exception as e:
        logger.warning(
            "best_effort_call_failed",
            action=action,
            error=error_summary(e),
            error_type=type(e).__name__,
            **context,
        )
