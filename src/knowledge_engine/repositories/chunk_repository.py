"""Repository for document chunks and nearest-neighbour lookup."""

import logging
from typing import List, Sequence, Set, Tuple

import numpy as np
from pgvector.sqlalchemy import Vector
from sqlalchemy import Float, bindparam, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.database.models import Chunk, Document
from knowledge_engine.repositories.base import BaseRepository
from knowledge_engine.utils.errors import DatabaseError

logger = logging.getLogger(__name__)


def cosine_distances(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Cosine distance (0 identical, 2 opposite) between a query and each vector."""
    matrix = np.asarray(vectors, dtype=float)
    target = np.asarray(query, dtype=float)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(target)
    dots = matrix @ target
    with np.errstate(divide="ignore", invalid="ignore"):
        similarities = np.where(norms > 0, dots / norms, 0.0)
    return 1.0 - similarities


class ChunkRepository(BaseRepository[Chunk]):
    """Data access for chunks."""

    def __init__(self, session: AsyncSession):
        super().__init__(Chunk, session)

    async def list_for_document(self, document_id: str) -> List[Chunk]:
        try:
            result = await self.session.execute(
                select(Chunk).where(Chunk.document_id == document_id).order_by(Chunk.chunk_index)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing chunks for document {document_id}: {e}")
            raise DatabaseError("Failed to list chunks") from e

    async def delete_for_document(self, document_id: str) -> int:
        """Delete every chunk of a document."""
        try:
            result = await self.session.execute(
                delete(Chunk)
                .where(Chunk.document_id == document_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting chunks for document {document_id}: {e}")
            raise DatabaseError("Failed to delete chunks") from e

    async def has_chunks_for_provider(self, document_id: str, provider_id: str) -> bool:
        try:
            result = await self.session.execute(
                select(func.count())
                .select_from(Chunk)
                .where(Chunk.document_id == document_id, Chunk.embedding_provider_id == provider_id)
            )
            return (result.scalar() or 0) > 0
        except SQLAlchemyError as e:
            logger.error(f"Error checking chunks for document {document_id}: {e}")
            raise DatabaseError("Failed to check chunks") from e

    async def delete_for_other_providers(self, provider_id: str) -> Tuple[int, Set[str]]:
        """
        Delete chunks produced by any provider other than ``provider_id``.

        Returns:
            (deleted chunk count, IDs of documents that lost chunks)
        """
        stale = (Chunk.embedding_provider_id.is_not(None), Chunk.embedding_provider_id != provider_id)
        try:
            result = await self.session.execute(select(Chunk.document_id).where(*stale).distinct())
            document_ids = set(result.scalars().all())
            deleted = await self.session.execute(
                delete(Chunk).where(*stale).execution_options(synchronize_session=False)
            )
            return deleted.rowcount or 0, document_ids
        except SQLAlchemyError as e:
            logger.error(f"Error deleting stale chunks for provider {provider_id}: {e}")
            raise DatabaseError("Failed to invalidate chunks") from e

    async def delete_all(self) -> int:
        try:
            result = await self.session.execute(delete(Chunk).execution_options(synchronize_session=False))
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting all chunks: {e}")
            raise DatabaseError("Failed to delete chunks") from e

    async def nearest_neighbors(
        self,
        query_vector: Sequence[float],
        provider_id: str,
        limit: int,
    ) -> List[Tuple[Chunk, float]]:
        """
        Embedded chunks of live documents closest to a query vector.

        Only chunks produced by ``provider_id`` are compared; vectors from
        other models are not comparable.

        Returns:
            (chunk, cosine distance) pairs, closest first
        """
        filters = (
            Chunk.embedding.is_not(None),
            Chunk.embedding_provider_id == provider_id,
            Document.deleted_at.is_(None),
        )
        try:
            if self.is_postgres:
                distance = Chunk.embedding.op("<=>", return_type=Float)(
                    bindparam("query_vector", value=list(query_vector), type_=Vector(len(query_vector)))
                ).label("distance")
                result = await self.session.execute(
                    select(Chunk, distance)
                    .join(Document, Chunk.document_id == Document.id)
                    .where(*filters)
                    .order_by(distance)
                    .limit(limit)
                )
                return [(chunk, float(dist)) for chunk, dist in result.all()]

            result = await self.session.execute(
                select(Chunk).join(Document, Chunk.document_id == Document.id).where(*filters)
            )
            chunks = list(result.scalars().all())
            if not chunks:
                return []
            distances = cosine_distances(query_vector, [chunk.embedding for chunk in chunks])
            order = np.argsort(distances, kind="stable")[:limit]
            return [(chunks[i], float(distances[i])) for i in order]
        except SQLAlchemyError as e:
            logger.error(f"Error running nearest-neighbour query: {e}")
            raise DatabaseError("Failed to run nearest-neighbour query") from e
