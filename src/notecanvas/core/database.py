"""
Database Configuration

Async SQLAlchemy 2.0 setup with connection pooling and session management.
Uses asyncpg as the PostgreSQL driver for non-blocking I/O.

Design:
    - Lazy initialization: engine created on first use, not at import.
    - get_session_factory: reusable session maker, also used by background
      tasks that outlive the request session.
    - get_db: FastAPI dependency that yields a request-scoped session.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from notecanvas.core.config import settings
from notecanvas.models.base import Base

logger = logging.getLogger(__name__)

# Module-level singletons (lazy)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async SQLAlchemy engine (singleton)."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = create_async_engine(settings.DATABASE_URL, echo=False, pool_size=5)
        logger.info(
            "Database engine created: %s@%s",
            settings.POSTGRES_USER,
            settings.POSTGRES_HOST,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory (singleton)."""
    global _session_factory  # noqa: PLW0603
    if _session_factory is None:
        # expire_on_commit=False: prevents implicit I/O after commit when accessing attributes
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Yields:
        AsyncSession: Scoped to the request lifecycle. Automatically closed
        after the request completes (including on exceptions).
    """
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def dispose_engine() -> None:
    """Dispose the engine at application shutdown."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine disposed")


# Re-export Base for Alembic migrations compatibility
__all__ = ["Base", "get_engine", "get_session_factory", "get_db", "dispose_engine"]
