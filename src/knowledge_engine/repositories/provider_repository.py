"""Repository for embedding provider records."""

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.database.models import EmbeddingProvider
from knowledge_engine.repositories.base import BaseRepository
from knowledge_engine.utils.errors import DatabaseError

logger = logging.getLogger(__name__)


class ProviderRepository(BaseRepository[EmbeddingProvider]):
    """Data access for embedding providers."""

    def __init__(self, session: AsyncSession):
        super().__init__(EmbeddingProvider, session)

    async def get_enabled(self) -> Optional[EmbeddingProvider]:
        """Get the enabled provider, if any."""
        try:
            result = await self.session.execute(
                select(EmbeddingProvider)
                .where(EmbeddingProvider.enabled.is_(True))
                .order_by(EmbeddingProvider.created_at)
                .limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting enabled embedding provider: {e}")
            raise DatabaseError("Failed to retrieve enabled embedding provider") from e

    async def get_by_name(self, name: str) -> Optional[EmbeddingProvider]:
        try:
            result = await self.session.execute(
                select(EmbeddingProvider).where(EmbeddingProvider.name == name)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting embedding provider by name {name}: {e}")
            raise DatabaseError("Failed to retrieve embedding provider") from e

    async def list_all(self) -> List[EmbeddingProvider]:
        try:
            result = await self.session.execute(
                select(EmbeddingProvider).order_by(EmbeddingProvider.created_at)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing embedding providers: {e}")
            raise DatabaseError("Failed to list embedding providers") from e

    async def activate(self, provider_id: str) -> Optional[str]:
        """
        Make one provider the only enabled provider.

        Locks the provider rows (PostgreSQL) so concurrent activations
        serialize; readers never see two enabled providers once committed.

        Args:
            provider_id: Provider to enable

        Returns:
            ID of the previously enabled provider, or None
        """
        try:
            locked = await self.session.execute(
                select(EmbeddingProvider.id, EmbeddingProvider.enabled)
                .order_by(EmbeddingProvider.created_at)
                .with_for_update()
            )
            previous_id = next((row.id for row in locked if row.enabled), None)

            await self.session.execute(
                update(EmbeddingProvider)
                .where(EmbeddingProvider.enabled.is_(True), EmbeddingProvider.id != provider_id)
                .values(enabled=False)
            )
            await self.session.execute(
                update(EmbeddingProvider)
                .where(EmbeddingProvider.id == provider_id)
                .values(enabled=True)
            )
            await self.session.flush()
            return previous_id
        except SQLAlchemyError as e:
            logger.error(f"Error activating embedding provider {provider_id}: {e}")
            raise DatabaseError("Failed to activate embedding provider") from e
