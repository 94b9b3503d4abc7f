"""PostgreSQL async connection management.

Provides the process-wide async SQLAlchemy engine (asyncpg driver) and the
FastAPI dependency that hands a pooled connection to each request.
"""

from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from jobservices.logging_config import get_logger

logger = get_logger(name=__name__)

_engine: AsyncEngine | None = None


def init_engine(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> AsyncEngine:
    """Create the global async engine."""
    global _engine
    _engine = create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        echo=False,
    )
    logger.info("PostgreSQL async engine initialized")
    return _engine


def get_engine() -> AsyncEngine:
    """Get the global async engine. Raises if not initialized."""
    if _engine is None:
        raise RuntimeError(
            "PostgreSQL engine not initialized. Call init_engine() first."
        )
    return _engine


async def ping_database() -> None:
    """Run ``SELECT 1``; any connection error propagates."""
    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_db_connection() -> AsyncGenerator[AsyncConnection, None]:
    """FastAPI dependency that yields a pooled async connection.

    Uncommitted work is rolled back when the connection returns to the pool.
    """
    async with get_engine().connect() as conn:
        yield conn


async def dispose_engine() -> None:
    """Dispose the async engine and release all connections."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        logger.info("PostgreSQL engine disposed")
    _engine = None
