"""Autocomplete suggestions for the search box."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.config import get_settings
from knowledge_engine.models.search import Suggestion, SuggestionResult
from knowledge_engine.repositories.document_repository import DocumentRepository
from knowledge_engine.utils.logging import get_logger

logger = get_logger("suggestions_service")


class SuggestionsService:
    """Title matches for a query prefix; trigram-ranked on PostgreSQL."""

    def __init__(self, session: AsyncSession):
        self.documents = DocumentRepository(session)
        self.limit = get_settings().search.suggestions_limit

    async def suggest(self, prefix: Optional[str], collection_id: Optional[str] = None) -> SuggestionResult:
        query = (prefix or "").strip()
        if not query:
            return SuggestionResult()

        try:
            documents = await self.documents.suggest_titles(query, collection_id, self.limit)
        except Exception as e:
            logger.error(f"Suggestions failed for '{query}': {e}")
            return SuggestionResult()

        return SuggestionResult(
            suggestions=[Suggestion(id=doc.id, kind=doc.kind, title=doc.title) for doc in documents]
        )
