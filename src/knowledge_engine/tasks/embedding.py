"""Embedding Celery tasks."""

import logging
from typing import Any, Dict, List

from celery import shared_task

from knowledge_engine.config import get_settings
from knowledge_engine.database.session import get_session_context
from knowledge_engine.models.results import ActivationResult
from knowledge_engine.repositories.chunk_repository import ChunkRepository
from knowledge_engine.repositories.document_repository import DocumentRepository
from knowledge_engine.services.document_embedding_service import DocumentEmbeddingService
from knowledge_engine.services.embedding.client import current_provider
from knowledge_engine.services.regeneration_service import RegenerationService
from knowledge_engine.utils.async_helpers import run_async
from knowledge_engine.utils.errors import DocumentLockedError, NotFoundError, ValidationError
from knowledge_engine.utils.locks import document_lock

logger = logging.getLogger(__name__)

RATE_LIMIT_ATTEMPTS = 5
API_ERROR_ATTEMPTS = 3
API_ERROR_RETRY_DELAY = 5  # seconds
LOCK_RETRY_DELAY = 15  # seconds
LOCK_RETRY_ATTEMPTS = 5


def rate_limit_countdown(retries: int) -> int:
    """Polynomially growing delay: 3s, 18s, 83s, 258s..."""
    return (retries + 1) ** 4 + 2


async def _embed_document(document_id: str, force: bool) -> Dict[str, Any]:
    async with document_lock(document_id):
        async with get_session_context() as session:
            provider = await current_provider(session)
            if provider is None:
                return {"success": False, "skipped": True, "reason": "no_provider", "document_id": document_id}

            document = await DocumentRepository(session).get_live(document_id)
            if document is None:
                return {"success": False, "skipped": True, "reason": "not_found", "document_id": document_id}

            if not force and await ChunkRepository(session).has_chunks_for_provider(document_id, provider.id):
                return {"success": True, "skipped": True, "reason": "already_embedded", "document_id": document_id}

            result = await DocumentEmbeddingService(session).embed(document, provider)
            return {**result.model_dump(), "skipped": False, "provider_id": provider.id}


@shared_task(
    bind=True,
    name="knowledge_engine.tasks.embedding.embed_document",
    max_retries=RATE_LIMIT_ATTEMPTS - 1,
    acks_late=True,
)
def embed_document(self, document_id: str, force: bool = False) -> dict:
    """
    Build the embedded chunk set of one document.

    Skips when no provider is enabled, the document is missing or deleted,
    or (unless ``force``) the document already has chunks from the enabled
    provider. Rate limits are retried with polynomial backoff, other API
    failures after a fixed delay; configuration errors are not retried.

    Args:
        document_id: Document to embed
        force: Re-embed even if chunks from the enabled provider exist

    Returns:
        dict with the embedding result
    """
    try:
        result = run_async(_embed_document(document_id, force))
    except DocumentLockedError as exc:
        logger.info(f"Document {document_id} is locked by another worker, retrying in {LOCK_RETRY_DELAY}s")
        raise self.retry(exc=exc, countdown=LOCK_RETRY_DELAY, max_retries=LOCK_RETRY_ATTEMPTS)

    if result.get("skipped"):
        logger.info(f"Skipped embedding for document {document_id}: {result['reason']}")
        return result

    if result.get("success"):
        logger.info(f"Generated {result['chunk_count']} chunks for document {document_id}")
        return result

    error_type = result.get("error_type")
    retries = self.request.retries
    if error_type == "RateLimitError" and retries < RATE_LIMIT_ATTEMPTS - 1:
        countdown = rate_limit_countdown(retries)
        logger.warning(f"Rate limited embedding document {document_id}, retrying in {countdown}s")
        raise self.retry(countdown=countdown, max_retries=RATE_LIMIT_ATTEMPTS - 1)
    if error_type == "ApiError" and retries < API_ERROR_ATTEMPTS - 1:
        logger.warning(f"API error embedding document {document_id}, retrying in {API_ERROR_RETRY_DELAY}s")
        raise self.retry(countdown=API_ERROR_RETRY_DELAY, max_retries=API_ERROR_ATTEMPTS - 1)

    logger.error(f"Failed to embed document {document_id}: {error_type}: {result.get('error')}")
    return result


def _enqueue(document_ids: List[str]) -> int:
    queue = get_settings().celery.embeddings_queue
    for document_id in document_ids:
        embed_document.apply_async(args=[document_id], queue=queue)
    return len(document_ids)


async def _prepare(provider_id: str, reindex: bool) -> Dict[str, Any]:
    async with get_session_context() as session:
        service = RegenerationService(session)
        result = await (service.reindex(provider_id) if reindex else service.prepare(provider_id))
        return result.model_dump()


@shared_task(
    bind=True,
    name="knowledge_engine.tasks.embedding.regenerate_all_embeddings",
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def regenerate_all_embeddings(self, provider_id: str) -> dict:
    """
    Invalidate other providers' chunks and enqueue embedding for every document lacking chunks.

    Args:
        provider_id: Newly activated provider
    """
    try:
        result = run_async(_prepare(provider_id, reindex=False))
    except (NotFoundError, ValidationError) as exc:
        logger.warning(f"Skipping embedding rebuild for provider {provider_id}: {exc.message}")
        return {"success": False, "skipped": True, "provider_id": provider_id, "reason": exc.message}
    except Exception as exc:
        logger.error(f"Error preparing regeneration for provider {provider_id}: {exc}", exc_info=True)
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))

    queued = _enqueue(result["document_ids"])
    logger.info(
        f"Regeneration for provider {provider_id}: deleted {result['deleted_chunks']} chunks, "
        f"queued {queued} documents"
    )
    return {"success": True, "provider_id": provider_id, "deleted_chunks": result["deleted_chunks"], "queued": queued}


@shared_task(
    bind=True,
    name="knowledge_engine.tasks.embedding.reindex_embeddings",
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def reindex_embeddings(self, provider_id: str) -> dict:
    """
    Delete all chunks and enqueue embedding for every live document.

    Args:
        provider_id: Enabled provider
    """
    try:
        result = run_async(_prepare(provider_id, reindex=True))
    except (NotFoundError, ValidationError) as exc:
        logger.warning(f"Skipping embedding rebuild for provider {provider_id}: {exc.message}")
        return {"success": False, "skipped": True, "provider_id": provider_id, "reason": exc.message}
    except Exception as exc:
        logger.error(f"Error reindexing for provider {provider_id}: {exc}", exc_info=True)
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))

    queued = _enqueue(result["document_ids"])
    logger.info(f"Reindex for provider {provider_id}: deleted {result['deleted_chunks']} chunks, queued {queued}")
    return {"success": True, "provider_id": provider_id, "deleted_chunks": result["deleted_chunks"], "queued": queued}


def schedule_regeneration(activation: ActivationResult) -> bool:
    """Enqueue chunk regeneration after an activation that changed the enabled provider."""
    if not activation.changed:
        return False
    regenerate_all_embeddings.apply_async(
        args=[activation.provider_id],
        queue=get_settings().celery.embeddings_queue,
    )
    logger.info(f"Scheduled embedding regeneration for provider {activation.provider_id}")
    return True
