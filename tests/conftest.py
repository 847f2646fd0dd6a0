"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from tenacity import wait_none

from knowledge_engine.database.models import (
    Answer,
    Base,
    Chunk,
    Collection,
    Document,
    EmbeddingProvider,
    Tag,
)
from knowledge_engine.services.embedding.adapters.base import EmbeddingAdapter
from knowledge_engine.services.embedding.registry import ADAPTERS

# Test database URL (in-memory SQLite for unit tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Each stub vector dimension counts one of these words
VOCABULARY = ("python", "database", "cooking", "garden")


def keyword_vector(text: str, dimensions: int = len(VOCABULARY)) -> List[float]:
    """Bag-of-words vector over VOCABULARY, never all zeros."""
    words = text.lower().replace(".", " ").replace(",", " ").split()
    return [words.count(word) + 0.01 for word in VOCABULARY[:dimensions]]


class StubEmbeddingAdapter(EmbeddingAdapter):
    """In-process adapter producing keyword vectors; can be told to fail from the Nth call on."""

    provider_type = "stub"
    calls: List[str] = []
    fail_from: Optional[int] = None
    error: Optional[Exception] = None

    def __init__(self, provider):
        super().__init__(provider)
        self.retry_wait = wait_none()

    async def _embed_batch(self, batch):
        vectors = []
        for text in batch:
            StubEmbeddingAdapter.calls.append(text)
            if self.fail_from is not None and len(StubEmbeddingAdapter.calls) >= self.fail_from:
                raise self.error
            vectors.append(keyword_vector(text, self.dimensions))
        return vectors


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def session(engine):
    """Create test database session."""
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def stub_adapter(monkeypatch):
    """Register the stub adapter under provider type ``stub`` and reset its script."""
    monkeypatch.setitem(ADAPTERS, "stub", StubEmbeddingAdapter)
    monkeypatch.setattr(StubEmbeddingAdapter, "calls", [])
    monkeypatch.setattr(StubEmbeddingAdapter, "fail_from", None)
    monkeypatch.setattr(StubEmbeddingAdapter, "error", None)
    return StubEmbeddingAdapter


class Factory:
    """Creates persisted rows for tests."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._clock = datetime(2026, 1, 1, 12, 0, 0)

    def _tick(self) -> datetime:
        self._clock += timedelta(minutes=1)
        return self._clock

    async def provider(
        self,
        name: str = "Stub",
        enabled: bool = True,
        chunk_size: int = 20,
        chunk_overlap: int = 0,
        similarity_threshold: Optional[float] = 0.5,
        provider_type: str = "stub",
        embedding_model: str = "stub-model",
        dimensions: int = len(VOCABULARY),
        api_key: Optional[str] = None,
    ) -> EmbeddingProvider:
        settings = {}
        if similarity_threshold is not None:
            settings["similarity_threshold"] = similarity_threshold
        provider = EmbeddingProvider(
            name=name,
            provider_type=provider_type,
            embedding_model=embedding_model,
            dimensions=dimensions,
            api_key=api_key,
            enabled=enabled,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            settings=settings,
            created_at=self._tick(),
        )
        self.session.add(provider)
        await self.session.flush()
        return provider

    async def tag(self, name: str) -> Tag:
        tag = Tag(name=name)
        self.session.add(tag)
        await self.session.flush()
        return tag

    async def collection(self, name: str) -> Collection:
        collection = Collection(name=name, slug=name.lower().replace(" ", "-"), documents=[])
        self.session.add(collection)
        await self.session.flush()
        return collection

    async def document(
        self,
        title: str,
        body: str = "",
        kind: str = "article",
        content_type: str = "markdown",
        author_id: Optional[str] = None,
        tags: Iterable[Tag] = (),
        collections: Iterable[Collection] = (),
        vote_score: int = 0,
        context: Optional[str] = None,
        deleted: bool = False,
    ) -> Document:
        created_at = self._tick()
        document = Document(
            title=title,
            body=body,
            kind=kind,
            content_type=content_type,
            author_id=author_id,
            vote_score=vote_score,
            context=context,
            tags=list(tags),
            collections=list(collections),
            created_at=created_at,
            updated_at=created_at,
            deleted_at=created_at if deleted else None,
        )
        self.session.add(document)
        await self.session.flush()
        return document

    async def answer(self, document: Document, body: str, vote_score: int = 0, is_correct: bool = False) -> Answer:
        answer = Answer(
            document_id=document.id,
            body=body,
            vote_score=vote_score,
            is_correct=is_correct,
            created_at=self._tick(),
        )
        self.session.add(answer)
        await self.session.flush()
        return answer

    async def chunk(
        self,
        document: Document,
        provider: Optional[EmbeddingProvider],
        content: str,
        chunk_index: int = 0,
        embedding: Optional[List[float]] = None,
    ) -> Chunk:
        chunk = Chunk(
            document_id=document.id,
            embedding_provider_id=provider.id if provider else None,
            chunk_index=chunk_index,
            content=content,
            token_count=len(content) // 3,
            embedding=embedding if embedding is not None else keyword_vector(content),
            embedded_at=self._tick(),
            chunk_metadata={"position": "only"},
        )
        self.session.add(chunk)
        await self.session.flush()
        return chunk


@pytest.fixture
def factory(session):
    """Row factory bound to the test session."""
    return Factory(session)
