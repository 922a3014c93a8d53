"""Main FastAPI application entry point."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.exception_handlers import setup_exception_handlers
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.request_id import RequestIDMiddleware
from api.routes.health import router as health_router
from api.v1 import router as v1_router
from api.v1.dependencies import get_audit_service, get_status_service
from core.config import settings
from core.logging import setup_logging
from core.rate_limit import limiter, rate_limit_exceeded_handler

logger = structlog.get_logger()

# Initialize structured logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup/shutdown tasks."""

    async def expiry_sweep_loop() -> None:
        """Periodically flip lapsed PENDING invitations to EXPIRED."""
        while True:
            await asyncio.sleep(settings.invitation_sweep_interval_seconds)
            try:
                expired = await get_status_service().expire_pending_invitations()
                if expired > 0:
                    logger.info("invitation_expiry_sweep_completed", expired_count=expired)
            except Exception:
                logger.exception("invitation_expiry_sweep_failed")

    async def retention_cleanup_loop() -> None:
        """Periodically delete old terminal invitations and audit entries."""
        while True:
            await asyncio.sleep(settings.invitation_cleanup_interval_seconds)
            try:
                deleted = await get_status_service().cleanup_old_invitations()
                purged = await get_audit_service().cleanup_old_audit_logs(
                    settings.audit_log_retention_days
                )
                if deleted > 0 or purged > 0:
                    logger.info(
                        "invitation_cleanup_completed",
                        deleted_count=deleted,
                        audit_logs_deleted=purged,
                    )
            except Exception:
                logger.exception("invitation_cleanup_failed")

    tasks = [
        asyncio.create_task(expiry_sweep_loop()),
        asyncio.create_task(retention_cleanup_loop()),
    ]
    yield
    for task in tasks:
        task.cancel()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        title=settings.app_name,
        description=(
            "## Tenant Invitations\n\n"
            "Invite users into a tenant, validate invitation tokens and accept "
            "invitations with a password or a Google account.\n\n"
            "### Features\n"
            "- **Lifecycle**: create, resend and cancel invitations with role snapshots\n"
            "- **Acceptance**: public token validation and account creation\n"
            "- **Bulk & reporting**: batch operations, statistics and CSV export\n\n"
            "### Authentication\n"
            "Management endpoints require a tenant session JWT "
            "in the Authorization header:\n"
            "```\nAuthorization: Bearer <your_token>\n```\n"
            "Acceptance endpoints are public; the invitation token is the credential.\n\n"
            "### Rate Limits\n"
            "- GET endpoints: 30 requests/minute\n"
            "- POST/DELETE and acceptance endpoints: 10 requests/minute"
        ),
        version="1.0.0",
        debug=settings.debug,
        contact={
            "name": "Platform Team",
        },
        license_info={
            "name": "MIT",
        },
        openapi_tags=[
            {
                "name": "health",
                "description": "Health check endpoints",
            },
            {
                "name": "invitations",
                "description": "Tenant invitation management, bulk operations and reports",
            },
            {
                "name": "invitation-acceptance",
                "description": "Public token validation and invitation acceptance",
            },
        ],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Tracking middleware (LIFO order - last added = outermost)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # GZip compression for responses > 1KB
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Setup exception handlers
    setup_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(v1_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )
