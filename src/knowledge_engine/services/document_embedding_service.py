"""Materialize the embedded chunk set of a document."""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.database.models import Chunk, Document
from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.models.results import EmbedResult
from knowledge_engine.repositories.chunk_repository import ChunkRepository
from knowledge_engine.repositories.document_repository import DocumentRepository
from knowledge_engine.services.chunking_service import ChunkingService
from knowledge_engine.services.content_extraction_service import ContentExtractionService
from knowledge_engine.services.embedding.client import EmbeddingClient, current_provider
from knowledge_engine.utils.errors import EmbeddingError, NoProviderError
from knowledge_engine.utils.logging import get_logger

logger = get_logger("document_embedding_service")


class DocumentEmbeddingService:
    """
    Replace a document's chunks with a freshly embedded set.

    The old chunk set is deleted and the new one created inside one
    transaction. If any embedding call fails the transaction is rolled back
    and the document keeps the chunks it had before.
    """

    def __init__(self, session: AsyncSession, extractor: Optional[ContentExtractionService] = None):
        self.session = session
        self.documents = DocumentRepository(session)
        self.chunks = ChunkRepository(session)
        self.extractor = extractor or ContentExtractionService()

    async def embed(self, document: Document, provider: Optional[ProviderConfig] = None) -> EmbedResult:
        """
        Chunk and embed a document.

        Args:
            document: Document to embed
            provider: Provider snapshot; the enabled provider when omitted

        Returns:
            EmbedResult; provider and embedding failures are reported, not raised
        """
        document_id = document.id

        if provider is None:
            provider = await current_provider(self.session)
        if provider is None:
            logger.info(f"Skipping embedding for document {document_id}: no embedding provider available")
            return EmbedResult(
                success=False,
                document_id=document_id,
                error="No embedding provider available",
                error_type=NoProviderError.__name__,
            )

        try:
            client = EmbeddingClient(provider)
        except EmbeddingError as e:
            logger.error(f"Cannot embed document {document_id}: {e.message}")
            return self._failure(document_id, e)

        async with client:
            return await self._replace_chunks(client, document, provider)

    async def _replace_chunks(
        self, client: EmbeddingClient, document: Document, provider: ProviderConfig
    ) -> EmbedResult:
        """Delete the old chunk set and embed the new one in a single transaction."""
        document_id = document.id
        best_answer = None
        if document.kind == "question":
            best_answer = await self.documents.best_answer(document_id)
        content = self.extractor.extract(document, best_answer)

        specs = ChunkingService.for_provider(provider).chunk_text(content)
        if not specs:
            return EmbedResult(success=True, document_id=document_id, chunk_count=0, message="No content to embed")

        logger.info(
            f"Embedding document {document_id}: provider={provider.name or provider.provider_type}, "
            f"model={provider.embedding_model}, chunks={len(specs)}"
        )

        try:
            await self.chunks.delete_for_document(document_id)

            for spec in specs:
                chunk = Chunk(
                    document_id=document_id,
                    embedding_provider_id=provider.id,
                    chunk_index=spec.chunk_index,
                    content=spec.content,
                    token_count=spec.token_count,
                    chunk_metadata=spec.metadata,
                )
                self.session.add(chunk)
                await self.session.flush()

                chunk.embedding = await client.embed_one(spec.content)
                chunk.embedded_at = datetime.utcnow()

            await self.session.flush()
            await self.documents.mark_embedded(document_id, datetime.utcnow())
            await self.session.commit()
        except EmbeddingError as e:
            await self.session.rollback()
            logger.warning(
                f"Embedding failed for document {document_id}, chunks left unchanged: "
                f"{type(e).__name__}: {e.message}"
            )
            return self._failure(document_id, e)
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Embedded document {document_id}: {len(specs)} chunks")
        return EmbedResult(success=True, document_id=document_id, chunk_count=len(specs))

    @staticmethod
    def _failure(document_id: str, error: EmbeddingError) -> EmbedResult:
        return EmbedResult(
            success=False,
            document_id=document_id,
            error=error.message,
            error_type=type(error).__name__,
        )
