"""Embedding client bound to one provider snapshot."""

from typing import List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.repositories.provider_repository import ProviderRepository
from knowledge_engine.services.embedding.adapters.base import EmbeddingAdapter
from knowledge_engine.services.embedding.registry import build_adapter
from knowledge_engine.utils.errors import NoProviderError
from knowledge_engine.utils.logging import get_logger

logger = get_logger("embedding_client")


async def current_provider(session: AsyncSession) -> Optional[ProviderConfig]:
    """Snapshot of the enabled provider, or None."""
    provider = await ProviderRepository(session).get_enabled()
    if provider is None:
        return None
    return ProviderConfig.model_validate(provider)


async def is_available(session: AsyncSession) -> bool:
    """Whether an embedding provider is enabled."""
    return await current_provider(session) is not None


class EmbeddingClient:
    """
    Single entry point for generating embeddings.

    The adapter is built at construction so misconfiguration surfaces before
    any work starts. Adapter errors propagate unchanged; retries happen inside
    the adapter, never here.

    Usage:
        async with EmbeddingClient(provider) as client:
            vector = await client.embed_one(text)
    """

    def __init__(self, provider: Optional[ProviderConfig]):
        if provider is None:
            raise NoProviderError()
        self.provider = provider
        self._adapter: EmbeddingAdapter = build_adapter(provider)

    @classmethod
    async def for_enabled(cls, session: AsyncSession) -> "EmbeddingClient":
        """Client for the currently enabled provider; raises NoProviderError when none."""
        return cls(await current_provider(session))

    @property
    def adapter(self) -> EmbeddingAdapter:
        return self._adapter

    def dimensions(self) -> int:
        return self._adapter.dimensions

    async def embed(self, texts: Union[str, Sequence[str]]) -> List[List[float]]:
        """Embed one or more texts, preserving order."""
        return await self._adapter.embed(texts)

    async def embed_one(self, text: str) -> List[float]:
        return await self._adapter.embed_one(text)

    async def aclose(self) -> None:
        """Close the adapter's backend client."""
        await self._adapter.aclose()

    async def __aenter__(self) -> "EmbeddingClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
