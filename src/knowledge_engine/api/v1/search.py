"""Search endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.dependencies import get_provider_snapshot, get_session
from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.models.search import (
    SearchParams,
    SearchResult,
    SortOrder,
    SuggestionResult,
    VectorQueryResult,
)
from knowledge_engine.services.search import HybridQueryService, SuggestionsService, VectorQueryService
from knowledge_engine.utils.logging import get_logger

logger = get_logger("search_api")

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=SearchResult)
async def search(
    q: str = Query(default="", description="Free-text query"),
    collection_id: Optional[str] = Query(default=None),
    author_id: Optional[str] = Query(default=None),
    tags: Optional[List[str]] = Query(default=None, description="Match documents carrying any of these tags"),
    sort: SortOrder = Query(default=SortOrder.RELEVANCE),
    page: int = Query(default=1),
    per_page: Optional[int] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    provider: Optional[ProviderConfig] = Depends(get_provider_snapshot),
) -> SearchResult:
    """
    Hybrid search over documents.

    Uses vector search when a provider is enabled and the query is ranked by
    relevance, falling back to keyword search when vector search finds
    nothing, times out or fails. Errors are reported in the result rather
    than as an HTTP error.
    """
    params = SearchParams(
        q=q,
        collection_id=collection_id,
        author_id=author_id,
        tags=tags or [],
        sort=sort,
        page=page,
        per_page=per_page,
    )
    return await HybridQueryService(session, provider).search(params)


@router.get("/suggestions", response_model=SuggestionResult)
async def suggestions(
    q: str = Query(default="", description="Title prefix"),
    collection_id: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> SuggestionResult:
    """Title suggestions for a query prefix."""
    return await SuggestionsService(session).suggest(q, collection_id)


@router.get("/similar", response_model=VectorQueryResult)
async def similar_questions(
    q: str = Query(default="", description="Draft question text"),
    collection_id: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    provider: Optional[ProviderConfig] = Depends(get_provider_snapshot),
) -> VectorQueryResult:
    """Existing questions semantically close to a draft question."""
    return await VectorQueryService(session, provider).similar_questions(q, collection_id)
