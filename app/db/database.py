"""Database connection and session management."""
import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.db.models import Base

logger = logging.getLogger(__name__)


def to_async_url(url: str) -> str:
    """Convert sync driver URLs to their async counterparts."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def engine_options(url: str) -> Dict[str, Any]:
    """Driver-specific engine arguments."""
    if url.startswith("sqlite"):
        # Concurrent writers wait for the file lock instead of failing at once
        return {"connect_args": {"timeout": settings.sqlite_busy_timeout_seconds}}
    return {"pool_pre_ping": True}


database_url = to_async_url(settings.database_url)

engine = create_async_engine(
    database_url,
    echo=settings.database_echo,
    future=True,
    **engine_options(database_url),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"[DATABASE] Schema ready on {engine.url.render_as_string(hide_password=True)}")


async def dispose_db() -> None:
    """Close pooled connections on shutdown."""
    await engine.dispose()
    logger.info("[DATABASE] Connections closed")


async def get_db() -> AsyncSession:
    """Dependency for getting database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
