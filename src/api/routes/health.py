"""Health check endpoints."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.logging import error_summary
from infrastructure.database.repositories.sqlalchemy_invitation_repo import (
    SQLAlchemyInvitationRepository,
)
from infrastructure.database.session import get_async_session

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

API_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str
    timestamp: str
    environment: str
    database: str | None = None
    expiry_backlog: int | None = None


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    """
    Basic health check for load balancers.

    Returns service status without checking dependencies. Fast and lightweight.
    """
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=API_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        environment=settings.app_env,
    )


@router.get(
    "/health/detailed",
    response_model=HealthResponse,
    summary="Detailed health check",
)
async def detailed_health_check(
    db: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """
    Detailed health check including database connectivity.

    ``expiry_backlog`` counts PENDING invitations past their expiry that the
    periodic sweep has not flipped yet. A growing value means the sweep is
    not running.
    """
    db_status = "unknown"
    backlog = None

    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
        backlog = await SQLAlchemyInvitationRepository(db).count_expired_pending(datetime.utcnow())
    except Exception as e:
        logger.warning("health_check_database_failed", error=error_summary(e))
        db_status = "unhealthy" if settings.is_production else f"unhealthy: {error_summary(e)}"

    overall_status = "healthy" if db_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall_status,
        service=settings.app_name,
        version=API_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        environment=settings.app_env,
        database=db_status,
        expiry_backlog=backlog,
    )
