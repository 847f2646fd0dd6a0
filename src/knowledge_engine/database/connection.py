"""Async engine for the document, chunk and provider tables."""

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from knowledge_engine.config import get_settings

logger = logging.getLogger(__name__)

# Sync driver prefixes and their async replacements
ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgresql+psycopg2://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}

_engine: Optional[AsyncEngine] = None


def get_database_url() -> str:
    """Configured database URL rewritten to an async driver."""
    url = get_settings().database.url
    for prefix, async_prefix in ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return async_prefix + url[len(prefix):]
    return url


def create_engine() -> AsyncEngine:
    database = get_settings().database
    url = get_database_url()

    if url.startswith("sqlite"):
        logger.info("Creating sqlite engine; vector search runs in-process")
        return create_async_engine(url, echo=database.echo)

    engine = create_async_engine(
        url,
        pool_size=database.pool_size,
        max_overflow=database.max_overflow,
        pool_timeout=database.pool_timeout,
        pool_recycle=database.pool_recycle,
        pool_pre_ping=True,
        echo=database.echo,
    )
    logger.info(f"Created PostgreSQL engine (pool_size={database.pool_size}, max_overflow={database.max_overflow})")
    return engine


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


async def close_engine() -> None:
    """Dispose of the pooled connections."""
    global _engine
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    logger.info("Database engine disposed")


async def check_connection() -> bool:
    """True when ``SELECT 1`` succeeds."""
    try:
        async with get_engine().connect() as conn:
            return (await conn.execute(text("SELECT 1"))).scalar() == 1
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
