"""Database session management."""

from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings

# SQLite engines use a single-connection pool that rejects sizing options.
_pool_options: dict[str, Any] = {}
if not settings.async_database_url.startswith("sqlite"):
    _pool_options = {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
    }

# Shared by request handlers and the lifespan sweep/cleanup tasks
engine = create_async_engine(
    settings.async_database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    # Bound values include invitation tokens; keep them out of error messages.
    hide_parameters=True,
    **_pool_options,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
