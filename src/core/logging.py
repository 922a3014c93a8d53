"""Structured logging configuration."""

import logging
import re
import sys
from typing import Any

import structlog
from sqlalchemy.exc import StatementError

from core.config import settings

TOKEN_PREVIEW_LENGTH = 8

# Public acceptance URLs carry the invitation token as a path segment.
TOKEN_PATH_PATTERN = re.compile(r"(/invitation-acceptance/)([^/?#\s\"]+)")

# Any bare 64-hex run in free text is treated as an invitation token.
TOKEN_TEXT_PATTERN = re.compile(r"(?<![A-Fa-f0-9])([A-Fa-f0-9]{64})(?![A-Fa-f0-9])")


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger.

    Production renders one JSON object per line; other environments use the
    coloured console renderer.
    """
    level = logging.DEBUG if settings.debug else logging.INFO

    renderer: structlog.types.Processor
    if settings.is_production:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            scrub_tokens_processor,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    access_logger = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, AccessLogRedactionFilter) for f in access_logger.filters):
        access_logger.addFilter(AccessLogRedactionFilter())


def truncate_token(token: str | None) -> str:
    """Return a log-safe preview of an invitation token."""
    if not token:
        return "null"
    return f"{token[:TOKEN_PREVIEW_LENGTH]}..."


def redact_path(path: str) -> str:
    """Replace an invitation token in a request path with its log-safe preview."""
    return TOKEN_PATH_PATTERN.sub(lambda m: m.group(1) + truncate_token(m.group(2)), path)


def scrub_tokens(text: str) -> str:
    """Shorten every token-shaped value in free text to its preview."""
    return TOKEN_TEXT_PATTERN.sub(lambda m: truncate_token(m.group(1)), redact_path(text))


def error_summary(exc: BaseException) -> str:
    """Describe an exception for the logs without leaking bound query parameters.

    SQLAlchemy statement errors render their bound parameters; only the
    driver's own message is kept.
    """
    if isinstance(exc, StatementError) and exc.orig is not None:
        return scrub_tokens(str(exc.orig))
    return scrub_tokens(str(exc))


def scrub_tokens_processor(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Structlog processor applying ``scrub_tokens`` to every string value."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = scrub_tokens(value)
    return event_dict


class AccessLogRedactionFilter(logging.Filter):
    """Redact invitation tokens from uvicorn access log records.

    Uvicorn formats access lines from ``(client, method, path, version, status)``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3 and isinstance(args[2], str):
            record.args = (*args[:2], redact_path(args[2]), *args[3:])
        return True
