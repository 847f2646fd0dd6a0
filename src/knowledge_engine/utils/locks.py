"""Redis-backed locks serializing work per document."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis
from redis.exceptions import LockError

from knowledge_engine.config import get_settings
from knowledge_engine.utils.errors import DocumentLockedError
from knowledge_engine.utils.logging import get_logger

logger = get_logger("locks")


def create_redis_client() -> redis.Redis:
    """Create a Redis client; one per event loop since Celery tasks run each job in a fresh loop."""
    settings = get_settings()
    return redis.from_url(
        settings.redis.url,
        socket_timeout=settings.redis.socket_timeout,
        socket_connect_timeout=settings.redis.socket_connect_timeout,
    )


def document_lock_key(document_id: str) -> str:
    return f"knowledge_engine:embed_document:{document_id}"


@asynccontextmanager
async def document_lock(document_id: str) -> AsyncIterator[None]:
    """
    Hold the embedding lock for a document.

    Raises:
        DocumentLockedError: Another holder has the lock
    """
    settings = get_settings()
    client = create_redis_client()
    lock = client.lock(document_lock_key(document_id), timeout=settings.redis.lock_timeout, blocking=False)
    try:
        if not await lock.acquire():
            raise DocumentLockedError(document_id)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Expired while held; the next job re-checks chunk state anyway
                logger.warning(f"Embedding lock for document {document_id} was lost: {e}")
    finally:
        await client.aclose()
