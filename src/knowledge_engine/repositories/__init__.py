"""Repositories package."""

from knowledge_engine.repositories.base import BaseRepository
from knowledge_engine.repositories.chunk_repository import ChunkRepository
from knowledge_engine.repositories.document_repository import DocumentRepository, KeywordFilters
from knowledge_engine.repositories.provider_repository import ProviderRepository

__all__ = [
    "BaseRepository",
    "ChunkRepository",
    "DocumentRepository",
    "KeywordFilters",
    "ProviderRepository",
]
