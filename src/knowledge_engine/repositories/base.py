"""Shared repository plumbing: CRUD by primary key and dialect detection."""

import logging
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.database.models import Base
from knowledge_engine.utils.errors import DatabaseError

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Data access for one mapped model.

    Writes flush but never commit; the caller owns the transaction. Driver
    errors surface as DatabaseError.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.bind.dialect.name

    @property
    def is_postgres(self) -> bool:
        """PostgreSQL gets pgvector and full-text queries; other dialects fall back."""
        return self.dialect_name == "postgresql"

    @property
    def _name(self) -> str:
        return self.model.__name__

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error loading {self._name} {id}: {e}")
            raise DatabaseError(f"Failed to retrieve {self._name}") from e

    async def create(self, **values) -> ModelType:
        try:
            instance = self.model(**values)
            self.session.add(instance)
            await self.session.flush()
            logger.debug(f"Created {self._name} {instance.id}")
            return instance
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self._name}: {e}")
            raise DatabaseError(f"Failed to create {self._name}") from e

    async def update(self, id: str, **values) -> Optional[ModelType]:
        """Set attributes on a row and reload it; None when the row does not exist."""
        instance = await self.get_by_id(id)
        if instance is None:
            return None
        try:
            for column, value in values.items():
                setattr(instance, column, value)
            await self.session.flush()
            await self.session.refresh(instance)
            return instance
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self._name} {id}: {e}")
            raise DatabaseError(f"Failed to update {self._name}") from e

    async def delete(self, id: str) -> bool:
        instance = await self.get_by_id(id)
        if instance is None:
            return False
        try:
            await self.session.delete(instance)
            await self.session.flush()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self._name} {id}: {e}")
            raise DatabaseError(f"Failed to delete {self._name}") from e

    async def count(self) -> int:
        try:
            result = await self.session.execute(select(func.count()).select_from(self.model))
            return result.scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Error counting {self._name} rows: {e}")
            raise DatabaseError(f"Failed to count {self._name} rows") from e
