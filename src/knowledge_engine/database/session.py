"""Async sessions for request handlers and Celery jobs."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from knowledge_engine.database.connection import check_connection, close_engine, get_engine

logger = logging.getLogger(__name__)

_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Session that commits on success and rolls back on any exception.

    Used directly by Celery jobs and wrapped by ``get_session`` for FastAPI.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Rolled back database session: {type(e).__name__}: {e}")
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Usage:
        @router.get("/search")
        async def search(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with get_session_context() as session:
        yield session


async def init_db() -> None:
    """Log whether the database is reachable at startup."""
    if await check_connection():
        logger.info("Database connection initialized successfully")
    else:
        logger.warning("Database unreachable at startup; /ready will report not_ready")


async def close_db() -> None:
    try:
        await close_engine()
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")
