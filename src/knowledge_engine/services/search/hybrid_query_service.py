"""Vector-first search with keyword fallback."""

import asyncio
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.config import get_settings
from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.models.search import (
    Hit,
    SearchMode,
    SearchParams,
    SearchResult,
    SortOrder,
    VectorQueryResult,
)
from knowledge_engine.repositories.document_repository import DocumentRepository, KeywordFilters
from knowledge_engine.services.search.results import build_source, total_pages
from knowledge_engine.services.search.vector_query_service import VectorQueryService
from knowledge_engine.utils.logging import get_logger, log_error

logger = get_logger("hybrid_query_service")

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100
# Vector candidates fetched per page of results
VECTOR_CANDIDATES_PER_PAGE = 3


class HybridQueryService:
    """
    Hybrid search combining semantic and keyword retrieval.

    Strategy:
    1. Explicit sorts and filter-only requests go straight to keyword search.
    2. With a provider, run vector search under a time budget; if it returns
       hits above the threshold, paginate those.
    3. Otherwise fall back to keyword search with storage-layer pagination.

    Callers always get a SearchResult; failures surface as ``search_mode=error``.
    """

    def __init__(
        self,
        session: AsyncSession,
        provider: Optional[ProviderConfig],
        vector_service: Optional[VectorQueryService] = None,
    ):
        self.session = session
        self.provider = provider
        self.documents = DocumentRepository(session)
        self.vector_service = vector_service or VectorQueryService(session, provider)
        self._settings = get_settings().search

    @staticmethod
    def clamp_page(page: Optional[int]) -> int:
        return max(page or 1, 1)

    @staticmethod
    def clamp_per_page(per_page: Optional[int]) -> int:
        return min(max(per_page or 0, DEFAULT_PER_PAGE), MAX_PER_PAGE)

    async def search(self, params: SearchParams) -> SearchResult:
        """
        Run a hybrid search.

        Args:
            params: Query, filters, sort and pagination

        Returns:
            SearchResult
        """
        page = self.clamp_page(params.page)
        per_page = self.clamp_per_page(params.per_page)
        query = params.query
        filters = KeywordFilters(
            collection_id=params.collection_id or None,
            author_id=params.author_id or None,
            tags=[tag.strip() for tag in params.tags if tag and tag.strip()],
        )

        if not query and not (filters.collection_id or filters.author_id or filters.tags):
            return self._empty_result(SearchMode.NONE, page, per_page)

        try:
            if params.sort != SortOrder.RELEVANCE or not query:
                return await self._keyword_search(query, filters, params.sort, page, per_page)

            if self.provider is not None:
                vector_result = await self._vector_search(query, filters, per_page)
                hits = self._apply_filters(vector_result.hits, filters)
                if hits:
                    return self._vector_page(hits, vector_result.similarity_threshold, page, per_page)

            return await self._keyword_search(query, filters, params.sort, page, per_page)
        except Exception as e:
            log_error(e, context={"operation": "hybrid_search", "query": query})
            result = self._empty_result(SearchMode.ERROR, page, per_page)
            result.cause = str(e)
            return result

    async def _vector_search(self, query: str, filters: KeywordFilters, per_page: int) -> VectorQueryResult:
        """Vector leg; a timeout or degraded result yields no hits."""
        try:
            result = await asyncio.wait_for(
                self.vector_service.query(
                    query,
                    collection_id=filters.collection_id,
                    limit=per_page * VECTOR_CANDIDATES_PER_PAGE,
                ),
                timeout=self._settings.vector_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Vector search exceeded {self._settings.vector_timeout}s budget, falling back to keyword search"
            )
            # The cancelled query may still hold the connection
            await self.session.rollback()
            return VectorQueryResult()

        if result.is_degraded:
            logger.warning(f"Vector search degraded ({result.cause_type}), falling back to keyword search")
        return result

    @staticmethod
    def _apply_filters(hits: List[Hit], filters: KeywordFilters) -> List[Hit]:
        """Author and tag filters for vector hits; collection scope is applied by the vector query."""
        if filters.author_id:
            hits = [hit for hit in hits if hit.source.author_id == filters.author_id]
        if filters.tags:
            wanted = set(filters.tags)
            hits = [hit for hit in hits if wanted.intersection(hit.source.tags)]
        return hits

    @staticmethod
    def _vector_page(
        hits: List[Hit],
        similarity_threshold: Optional[float],
        page: int,
        per_page: int,
    ) -> SearchResult:
        total = len(hits)
        start = (page - 1) * per_page
        page_hits = [
            hit.model_copy(update={"vector_rank": start + idx + 1, "vector_score": hit.score})
            for idx, hit in enumerate(hits[start : start + per_page])
        ]
        return SearchResult(
            hits=page_hits,
            total=total,
            page=page,
            per_page=per_page,
            total_pages=total_pages(total, per_page),
            search_mode=SearchMode.VECTOR,
            similarity_threshold=similarity_threshold,
        )

    async def _keyword_search(
        self,
        query: str,
        filters: KeywordFilters,
        sort: SortOrder,
        page: int,
        per_page: int,
    ) -> SearchResult:
        offset = (page - 1) * per_page
        rows, total = await self.documents.keyword_search(query, filters, sort, offset=offset, limit=per_page)
        hits = [
            Hit(
                id=document.id,
                score=rank,
                source=build_source(document),
                keyword_rank=offset + idx + 1 if rank is not None else None,
            )
            for idx, (document, rank) in enumerate(rows)
        ]
        return SearchResult(
            hits=hits,
            total=total,
            page=page,
            per_page=per_page,
            total_pages=total_pages(total, per_page),
            search_mode=SearchMode.KEYWORD,
        )

    @staticmethod
    def _empty_result(mode: SearchMode, page: int, per_page: int) -> SearchResult:
        return SearchResult(
            hits=[],
            total=0,
            page=page,
            per_page=per_page,
            total_pages=0,
            search_mode=mode,
        )
