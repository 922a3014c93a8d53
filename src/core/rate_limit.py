"""Rate limiting configuration using slowapi."""

from typing import Any

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from core.best_effort import best_effort
from core.config import settings
from core.logging import redact_path

logger = structlog.get_logger()

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)

INVITATION_PATH_PREFIXES = ("/api/v1/invitations", "/api/v1/invitation-acceptance")

# Shared scopes so every invitation-creating route draws from one window
TENANT_QUOTA_SCOPE = "invitation_tenant_quota"
ADMIN_QUOTA_SCOPE = "invitation_admin_quota"
ACCEPTANCE_IP_QUOTA_SCOPE = "invitation_acceptance_ip_quota"


def _current_user(request: Request) -> Any:
    return getattr(request.state, "current_user", None)


def tenant_rate_limit_key(request: Request) -> str:
    """Key requests by the authenticated caller's tenant."""
    user = _current_user(request)
    if user is None:
        return get_remote_address(request)
    return f"tenant:{user.tenant_id}"


def user_rate_limit_key(request: Request) -> str:
    """Key requests by the authenticated caller."""
    user = _current_user(request)
    if user is None:
        return get_remote_address(request)
    return f"user:{user.id}"


# Limit values are read from settings on every request
tenant_quota = limiter.shared_limit(
    lambda: settings.invitation_tenant_rate_limit,
    scope=TENANT_QUOTA_SCOPE,
    key_func=tenant_rate_limit_key,
)
admin_quota = limiter.shared_limit(
    lambda: settings.invitation_admin_rate_limit,
    scope=ADMIN_QUOTA_SCOPE,
    key_func=user_rate_limit_key,
)
acceptance_ip_quota = limiter.shared_limit(
    lambda: settings.invitation_acceptance_ip_rate_limit,
    scope=ACCEPTANCE_IP_QUOTA_SCOPE,
    key_func=get_remote_address,
)


def _limit_scope(exc: Exception) -> str:
    limit = getattr(exc, "limit", None)
    scope = getattr(limit, "scope", None)
    if scope == TENANT_QUOTA_SCOPE:
        return "tenant"
    if scope == ADMIN_QUOTA_SCOPE:
        return "admin"
    return "ip"


async def rate_limit_exceeded_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle rate limit exceeded errors.

    Rejections on invitation routes are also written to the invitation audit log.
    """
    detail = exc.detail if isinstance(exc, RateLimitExceeded) else str(exc)
    path = request.url.path
    safe_path = redact_path(path)

    if path.startswith(INVITATION_PATH_PREFIXES):
        from api.v1.dependencies import get_audit_service

        client_ip = get_remote_address(request)
        scope = _limit_scope(exc)
        user = _current_user(request)
        logger.warning(
            "invitation_rate_limit_exceeded",
            path=safe_path,
            ip_address=client_ip,
            scope=scope,
        )
        await best_effort(
            "audit_rate_limit_exceeded",
            get_audit_service().log_rate_limit_exceeded(
                ip_address=client_ip,
                user_agent=request.headers.get("user-agent"),
                metadata={"path": safe_path, "limit": str(detail), "scope": scope},
                tenant_id=user.tenant_id if user else None,
                user_id=user.id if user else None,
            ),
        )

    return JSONResponse(
        status_code=429,
        content={
            "statusCode": 429,
            "message": f"Rate limit exceeded: {detail}",
            "error": "Too Many Requests",
            "error_code": "RATE_LIMIT_EXCEEDED",
            "details": {
                "retry_after": str(detail),
            },
        },
    )
