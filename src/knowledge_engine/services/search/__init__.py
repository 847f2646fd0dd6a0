"""Search services."""

from knowledge_engine.services.search.hybrid_query_service import HybridQueryService
from knowledge_engine.services.search.suggestions_service import SuggestionsService
from knowledge_engine.services.search.vector_query_service import VectorQueryService

__all__ = ["HybridQueryService", "SuggestionsService", "VectorQueryService"]
