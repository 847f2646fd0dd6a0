"""Pydantic models."""

from knowledge_engine.models.chunk import ChunkPosition, TextChunk
from knowledge_engine.models.provider import (
    ProviderConfig,
    ProviderCreate,
    ProviderResponse,
    ProviderUpdate,
)
from knowledge_engine.models.results import ActivationResult, EmbedResult, RegenerateResult
from knowledge_engine.models.search import (
    ChunkRef,
    DocumentSource,
    Hit,
    QueryStatus,
    SearchMode,
    SearchParams,
    SearchResult,
    SortOrder,
    Suggestion,
    SuggestionResult,
    VectorQueryResult,
)

__all__ = [
    "ActivationResult",
    "ChunkPosition",
    "ChunkRef",
    "DocumentSource",
    "EmbedResult",
    "Hit",
    "ProviderConfig",
    "ProviderCreate",
    "ProviderResponse",
    "ProviderUpdate",
    "QueryStatus",
    "RegenerateResult",
    "SearchMode",
    "SearchParams",
    "SearchResult",
    "SortOrder",
    "Suggestion",
    "SuggestionResult",
    "TextChunk",
    "VectorQueryResult",
]
