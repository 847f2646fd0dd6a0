"""FastAPI dependencies."""

from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.database.session import get_session
from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.services.embedding.client import current_provider


async def get_provider_snapshot(
    session: AsyncSession = Depends(get_session),
) -> Optional[ProviderConfig]:
    """Snapshot of the enabled embedding provider for one request, or None."""
    return await current_provider(session)


__all__ = ["get_session", "get_provider_snapshot"]
