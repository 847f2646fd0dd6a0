"""Embedding adapters, registry and client."""

from knowledge_engine.services.embedding.client import EmbeddingClient, current_provider, is_available
from knowledge_engine.services.embedding.registry import ADAPTERS, build_adapter

__all__ = [
    "ADAPTERS",
    "EmbeddingClient",
    "build_adapter",
    "current_provider",
    "is_available",
]
