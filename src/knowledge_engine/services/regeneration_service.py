"""Chunk invalidation after the active provider changes."""

from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.database.models import EmbeddingProvider
from knowledge_engine.models.results import RegenerateResult
from knowledge_engine.repositories.chunk_repository import ChunkRepository
from knowledge_engine.repositories.document_repository import DocumentRepository
from knowledge_engine.repositories.provider_repository import ProviderRepository
from knowledge_engine.utils.errors import NotFoundError, ValidationError
from knowledge_engine.utils.logging import get_logger

logger = get_logger("regeneration_service")


class RegenerationService:
    """
    Prepare documents for re-embedding with a newly active provider.

    Vectors from different models are not comparable, so chunks produced by
    any other provider are deleted before the new provider's chunks are built.
    Both operations commit and return the documents that need an embedding job.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.providers = ProviderRepository(session)
        self.chunks = ChunkRepository(session)
        self.documents = DocumentRepository(session)

    async def _enabled_provider(self, provider_id: str) -> EmbeddingProvider:
        provider = await self.providers.get_by_id(provider_id)
        if provider is None:
            raise NotFoundError("Embedding provider", provider_id)
        if not provider.enabled:
            raise ValidationError(
                "Embedding provider is not enabled",
                errors={"provider_id": "must be the active provider"},
            )
        return provider

    async def prepare(self, provider_id: str) -> RegenerateResult:
        """
        Delete other providers' chunks and list documents to embed.

        Raises:
            NotFoundError: Unknown provider
            ValidationError: Provider is not the enabled one
        """
        provider = await self._enabled_provider(provider_id)

        deleted, affected_ids = await self.chunks.delete_for_other_providers(provider.id)
        reset = await self.documents.reset_embedded_at(affected_ids)
        document_ids = await self.documents.live_ids_without_provider_chunks(provider.id)
        await self.session.commit()

        logger.info(
            f"Prepared regeneration for provider {provider.name}: deleted {deleted} chunks from previous "
            f"providers, reset {reset} documents, {len(document_ids)} documents need embedding"
        )
        return RegenerateResult(
            provider_id=provider.id,
            deleted_chunks=deleted,
            reset_documents=reset,
            document_ids=document_ids,
        )

    async def reindex(self, provider_id: str) -> RegenerateResult:
        """
        Delete every chunk and re-embed all live documents with the enabled provider.

        Raises:
            NotFoundError: Unknown provider
            ValidationError: Provider is not the enabled one
        """
        provider = await self._enabled_provider(provider_id)

        reset = await self.documents.reset_embedded_at()
        deleted = await self.chunks.delete_all()
        document_ids = await self.documents.live_ids_without_provider_chunks(provider.id)
        await self.session.commit()

        logger.info(
            f"Reindexing with provider {provider.name}: deleted {deleted} chunks, reset {reset} documents, "
            f"{len(document_ids)} documents queued"
        )
        return RegenerateResult(
            provider_id=provider.id,
            deleted_chunks=deleted,
            reset_documents=reset,
            document_ids=document_ids,
        )
