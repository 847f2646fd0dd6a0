"""Semantic search over embedded chunks, grouped by parent document."""

from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.config import get_settings
from knowledge_engine.database.models import Chunk, Document
from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.models.search import Hit, QueryStatus, VectorQueryResult
from knowledge_engine.repositories.chunk_repository import ChunkRepository
from knowledge_engine.repositories.document_repository import DocumentRepository
from knowledge_engine.services.embedding.client import EmbeddingClient
from knowledge_engine.services.search.results import build_chunk_ref, build_source
from knowledge_engine.utils.errors import NoProviderError
from knowledge_engine.utils.logging import get_logger, log_error

logger = get_logger("vector_query_service")

# Chunks fetched per wanted hit; several chunks usually belong to one document
CANDIDATE_MULTIPLIER = 3


class VectorQueryService:
    """
    Embed a query and return the documents whose chunks are closest to it.

    Each document appears once, scored by its best chunk (similarity is
    ``1 - cosine distance``). Hits below the similarity threshold are dropped.
    Failures never raise: a missing provider yields status ``none`` and any
    other failure yields status ``degraded`` with the cause attached.
    """

    def __init__(self, session: AsyncSession, provider: Optional[ProviderConfig]):
        self.session = session
        self.provider = provider
        self.chunks = ChunkRepository(session)
        self.documents = DocumentRepository(session)
        self._settings = get_settings().search

    def clamp_limit(self, limit: Optional[int]) -> int:
        if not limit or limit <= 0:
            return self._settings.default_limit
        return min(limit, self._settings.max_limit)

    def effective_threshold(self, similarity_threshold: Optional[float] = None) -> float:
        """Explicit threshold, else the provider's, else the global fallback."""
        if similarity_threshold is not None:
            return float(similarity_threshold)
        if self.provider is not None:
            return self.provider.similarity_threshold
        return self._settings.fallback_similarity_threshold

    async def query(
        self,
        text: Optional[str],
        collection_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        similarity_threshold: Optional[float] = None,
        kinds: Optional[Sequence[str]] = None,
    ) -> VectorQueryResult:
        """
        Run a vector query.

        Args:
            text: Query text
            collection_id: Only return documents in this collection
            limit: Maximum hits (clamped to the configured maximum)
            offset: Hits to skip after grouping and thresholding
            similarity_threshold: Override the provider's threshold
            kinds: Only return documents of these kinds

        Returns:
            VectorQueryResult
        """
        query = (text or "").strip()
        limit = self.clamp_limit(limit)
        offset = max(offset or 0, 0)
        threshold = self.effective_threshold(similarity_threshold)

        if not query or self.provider is None:
            return VectorQueryResult(status=QueryStatus.NONE, similarity_threshold=threshold)

        try:
            async with EmbeddingClient(self.provider) as client:
                query_vector = await client.embed_one(query)
            neighbors = await self.chunks.nearest_neighbors(
                query_vector,
                self.provider.id,
                (limit + offset) * CANDIDATE_MULTIPLIER,
            )
            hits = await self._group_by_document(neighbors, collection_id, kinds)
        except NoProviderError:
            logger.warning("Vector query skipped: no embedding provider configured")
            return VectorQueryResult(status=QueryStatus.NONE, similarity_threshold=threshold)
        except Exception as e:
            log_error(
                e,
                context={
                    "operation": "vector_query",
                    "provider_type": self.provider.provider_type,
                    "model": self.provider.embedding_model,
                },
            )
            return VectorQueryResult(
                status=QueryStatus.DEGRADED,
                similarity_threshold=threshold,
                cause=str(e),
                cause_type=type(e).__name__,
            )

        hits = [hit for hit in hits if hit.score >= threshold]
        return VectorQueryResult(
            hits=hits[offset : offset + limit],
            status=QueryStatus.OK,
            similarity_threshold=threshold,
        )

    async def similar_questions(self, text: Optional[str], collection_id: Optional[str] = None) -> VectorQueryResult:
        """Existing questions semantically close to a draft question."""
        return await self.query(
            text,
            collection_id=collection_id,
            limit=self._settings.similar_results_limit,
            kinds=["question"],
        )

    async def _group_by_document(
        self,
        neighbors: List[Tuple[Chunk, float]],
        collection_id: Optional[str],
        kinds: Optional[Sequence[str]],
    ) -> List[Hit]:
        """Keep the best-scoring chunk per document, highest scores first."""
        documents = await self.documents.get_many_with_relations(chunk.document_id for chunk, _ in neighbors)

        best: Dict[str, Tuple[float, Chunk, Document]] = {}
        for chunk, distance in neighbors:
            document = documents.get(chunk.document_id)
            if document is None or document.is_deleted:
                continue
            if self._filtered_out(document, collection_id, kinds):
                continue
            similarity = 1.0 - (distance or 0.0)
            current = best.get(document.id)
            # Strictly greater: the first chunk encountered wins ties
            if current is None or similarity > current[0]:
                best[document.id] = (similarity, chunk, document)

        ranked = sorted(best.values(), key=lambda entry: -entry[0])
        return [
            Hit(
                id=document.id,
                score=similarity,
                source=build_source(document),
                best_chunk=build_chunk_ref(chunk),
                vector_score=similarity,
            )
            for similarity, chunk, document in ranked
        ]

    @staticmethod
    def _filtered_out(
        document: Document,
        collection_id: Optional[str],
        kinds: Optional[Sequence[str]],
    ) -> bool:
        if kinds and document.kind not in kinds:
            return True
        if collection_id:
            return all(collection.id != collection_id for collection in document.collections)
        return False
