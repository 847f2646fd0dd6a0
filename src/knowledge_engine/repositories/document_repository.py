"""Repository for documents: retrieval, lexical search and suggestions."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, desc, func, literal, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from knowledge_engine.database.models import Answer, Chunk, Collection, Document, Tag
from knowledge_engine.models.search import SortOrder
from knowledge_engine.repositories.base import BaseRepository
from knowledge_engine.utils.errors import DatabaseError

logger = logging.getLogger(__name__)

TS_CONFIG = "english"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class KeywordFilters:
    """Filters shared by keyword search."""

    collection_id: Optional[str] = None
    author_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)


class DocumentRepository(BaseRepository[Document]):
    """Data access for documents."""

    def __init__(self, session: AsyncSession):
        super().__init__(Document, session)

    async def get_live(self, document_id: str) -> Optional[Document]:
        """Get a document that is not soft-deleted."""
        try:
            result = await self.session.execute(
                select(Document).where(Document.id == document_id, Document.deleted_at.is_(None))
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting document {document_id}: {e}")
            raise DatabaseError("Failed to retrieve document") from e

    async def get_many_with_relations(self, document_ids: Iterable[str]) -> Dict[str, Document]:
        """Load documents with their tags and collections, keyed by ID."""
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return {}
        try:
            result = await self.session.execute(
                select(Document)
                .where(Document.id.in_(ids))
                .options(selectinload(Document.tags), selectinload(Document.collections))
            )
            return {doc.id: doc for doc in result.scalars().all()}
        except SQLAlchemyError as e:
            logger.error(f"Error loading documents: {e}")
            raise DatabaseError("Failed to load documents") from e

    async def best_answer(self, document_id: str) -> Optional[Answer]:
        """The accepted answer of a question, else its highest-voted answer."""
        try:
            result = await self.session.execute(
                select(Answer)
                .where(Answer.document_id == document_id)
                .order_by(desc(Answer.is_correct), desc(Answer.vote_score), Answer.created_at)
                .limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error loading best answer for document {document_id}: {e}")
            raise DatabaseError("Failed to load answers") from e

    async def mark_embedded(self, document_id: str, embedded_at: datetime) -> None:
        """Stamp ``embedded_at`` without touching ``updated_at``."""
        try:
            await self.session.execute(
                update(Document)
                .where(Document.id == document_id)
                .values(embedded_at=embedded_at, updated_at=Document.updated_at)
            )
        except SQLAlchemyError as e:
            logger.error(f"Error stamping embedded_at for document {document_id}: {e}")
            raise DatabaseError("Failed to update document") from e

    async def reset_embedded_at(self, document_ids: Optional[Iterable[str]] = None) -> int:
        """Clear ``embedded_at`` for the given documents, or for all documents when None."""
        stmt = update(Document).values(embedded_at=None, updated_at=Document.updated_at)
        if document_ids is not None:
            ids = list(document_ids)
            if not ids:
                return 0
            stmt = stmt.where(Document.id.in_(ids))
        else:
            stmt = stmt.where(Document.embedded_at.is_not(None))
        try:
            result = await self.session.execute(stmt)
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error resetting embedded_at: {e}")
            raise DatabaseError("Failed to reset documents") from e

    async def live_ids_without_provider_chunks(self, provider_id: str) -> List[str]:
        """IDs of live documents that have no chunks from ``provider_id``."""
        has_chunks = (
            select(Chunk.id)
            .where(Chunk.document_id == Document.id, Chunk.embedding_provider_id == provider_id)
            .exists()
        )
        try:
            result = await self.session.execute(
                select(Document.id)
                .where(Document.deleted_at.is_(None), ~has_chunks)
                .order_by(Document.created_at, Document.id)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing documents without chunks for provider {provider_id}: {e}")
            raise DatabaseError("Failed to list documents") from e

    def _filter_conditions(self, filters: KeywordFilters) -> list:
        conditions = [Document.deleted_at.is_(None)]
        if filters.collection_id:
            conditions.append(Document.collections.any(Collection.id == filters.collection_id))
        if filters.author_id:
            conditions.append(Document.author_id == filters.author_id)
        if filters.tags:
            conditions.append(Document.tags.any(Tag.name.in_(filters.tags)))
        return conditions

    def _text_match(self, query: str) -> Tuple[list, object]:
        """Match conditions and a rank expression for a keyword query."""
        if self.is_postgres:
            document_vector = func.to_tsvector(
                TS_CONFIG,
                func.coalesce(Document.title, "") + literal(" ") + func.coalesce(Document.body, ""),
            )
            ts_query = func.plainto_tsquery(TS_CONFIG, query)
            return [document_vector.bool_op("@@")(ts_query)], func.ts_rank(document_vector, ts_query)

        # Other dialects: rank by how many query terms appear in title or body
        terms = list(dict.fromkeys(term.lower() for term in query.split() if term))
        haystack = func.lower(func.coalesce(Document.title, "") + literal(" ") + func.coalesce(Document.body, ""))
        matches = [haystack.like(f"%{escape_like(term)}%", escape="\\") for term in terms]
        rank = sum((case((match, 1), else_=0) for match in matches), literal(0))
        return [or_(*matches)], rank

    @staticmethod
    def _sort_order(sort: SortOrder) -> list:
        if sort == SortOrder.OLDEST:
            return [Document.created_at.asc(), Document.id]
        if sort == SortOrder.VOTES:
            return [Document.vote_score.desc(), Document.created_at.desc(), Document.id]
        if sort == SortOrder.ACTIVITY:
            return [Document.updated_at.desc(), Document.id]
        return [Document.created_at.desc(), Document.id]

    async def keyword_search(
        self,
        query: str,
        filters: KeywordFilters,
        sort: SortOrder,
        offset: int,
        limit: int,
    ) -> Tuple[List[Tuple[Document, Optional[float]]], int]:
        """
        Lexical search with storage-layer pagination.

        Ranks by full-text relevance when a query is given and the sort is
        relevance; otherwise applies the explicit sort order.

        Returns:
            ((document, rank) pairs for the page, total matches)
        """
        conditions = self._filter_conditions(filters)
        rank = None
        if query and sort == SortOrder.RELEVANCE:
            match_conditions, rank = self._text_match(query)
            conditions.extend(match_conditions)

        try:
            total_result = await self.session.execute(
                select(func.count(Document.id)).where(and_(*conditions))
            )
            total = total_result.scalar() or 0

            if rank is not None:
                stmt = select(Document, rank.label("rank")).order_by(
                    desc("rank"), Document.created_at.desc(), Document.id
                )
            else:
                stmt = select(Document).order_by(*self._sort_order(sort))

            stmt = (
                stmt.where(and_(*conditions))
                .options(selectinload(Document.tags), selectinload(Document.collections))
                .offset(offset)
                .limit(limit)
            )
            result = await self.session.execute(stmt)
            if rank is not None:
                rows = [(doc, float(score) if score is not None else None) for doc, score in result.all()]
            else:
                rows = [(doc, None) for doc in result.scalars().all()]
            return rows, total
        except SQLAlchemyError as e:
            logger.error(f"Error running keyword search: {e}")
            raise DatabaseError("Failed to run keyword search") from e

    async def suggest_titles(
        self, prefix: str, collection_id: Optional[str], limit: int
    ) -> Sequence[Document]:
        """Live documents whose title contains ``prefix``, most similar first."""
        conditions = [
            Document.deleted_at.is_(None),
            Document.title.ilike(f"%{escape_like(prefix)}%", escape="\\"),
        ]
        if collection_id:
            conditions.append(Document.collections.any(Collection.id == collection_id))

        if self.is_postgres:
            order = [func.similarity(Document.title, prefix).desc(), Document.id]
        else:
            order = [func.length(Document.title), Document.title, Document.id]

        try:
            result = await self.session.execute(
                select(Document).where(and_(*conditions)).order_by(*order).limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error loading suggestions: {e}")
            raise DatabaseError("Failed to load suggestions") from e
