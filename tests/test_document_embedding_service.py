"""Tests for the document embedding pipeline."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from knowledge_engine.database.models import Document
from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.repositories.chunk_repository import ChunkRepository
from knowledge_engine.services.content_extraction_service import ContentExtractionService
from knowledge_engine.services.document_embedding_service import DocumentEmbeddingService
from knowledge_engine.utils.errors import ApiError, ConfigurationError, RateLimitError

# 40 six-letter words; with a 20 token (60 char) window each chunk holds 8 words
FIVE_CHUNK_BODY = " ".join(f"word{i:02d}" for i in range(40))


async def load_document(session, document_id):
    result = await session.execute(select(Document).where(Document.id == document_id))
    return result.scalar_one()


class TestDocumentEmbeddingService:
    """Test suite for DocumentEmbeddingService."""

    async def test_embeds_document_into_chunks(self, session, factory, stub_adapter):
        provider = await factory.provider()
        document = await factory.document("Words", FIVE_CHUNK_BODY)

        result = await DocumentEmbeddingService(session).embed(document, ProviderConfig.model_validate(provider))

        assert result.success is True
        assert result.chunk_count == 5
        chunks = await ChunkRepository(session).list_for_document(document.id)
        assert [c.chunk_index for c in chunks] == [0, 1, 2, 3, 4]
        assert all(c.embedding_provider_id == provider.id for c in chunks)
        assert all(len(c.embedding) == 4 and c.embedded_at is not None for c in chunks)
        assert [c.position for c in chunks] == ["start", "middle", "middle", "middle", "end"]
        assert chunks[0].content == " ".join(f"word{i:02d}" for i in range(8))
        assert len(stub_adapter.calls) == 5

        refreshed = await load_document(session, document.id)
        assert refreshed.embedded_at is not None
        assert refreshed.updated_at == refreshed.created_at

    async def test_uses_enabled_provider_when_omitted(self, session, factory, stub_adapter):
        provider = await factory.provider()
        document = await factory.document("Short", "python tips")

        result = await DocumentEmbeddingService(session).embed(document)

        assert result.success is True
        chunks = await ChunkRepository(session).list_for_document(document.id)
        assert [c.embedding_provider_id for c in chunks] == [provider.id]

    async def test_closes_embedding_client_after_failure(self, session, factory, stub_adapter, monkeypatch):
        aclose = AsyncMock()
        monkeypatch.setattr(stub_adapter, "aclose", aclose)
        stub_adapter.fail_from = 1
        stub_adapter.error = ApiError("boom")
        provider = await factory.provider()
        document = await factory.document("Short", "python tips")

        result = await DocumentEmbeddingService(session).embed(document, ProviderConfig.model_validate(provider))

        assert result.success is False
        aclose.assert_awaited_once()

    async def test_replaces_previous_chunks(self, session, factory, stub_adapter):
        old_provider = await factory.provider(name="Old", enabled=False)
        provider = await factory.provider(name="New")
        document = await factory.document("Short", "python tips")
        await factory.chunk(document, old_provider, "stale one", chunk_index=0)
        await factory.chunk(document, old_provider, "stale two", chunk_index=1)

        result = await DocumentEmbeddingService(session).embed(document, ProviderConfig.model_validate(provider))

        assert result.chunk_count == 1
        chunks = await ChunkRepository(session).list_for_document(document.id)
        assert [(c.content, c.embedding_provider_id) for c in chunks] == [("python tips", provider.id)]

    async def test_failure_midway_keeps_previous_chunks(self, session, factory, stub_adapter):
        provider = await factory.provider()
        document = await factory.document("Words", FIVE_CHUNK_BODY)
        await factory.chunk(document, provider, "previous content", chunk_index=0)
        await session.commit()

        stub_adapter.fail_from = 3
        stub_adapter.error = ApiError("upstream unavailable")

        result = await DocumentEmbeddingService(session).embed(document, ProviderConfig.model_validate(provider))

        assert result.success is False
        assert result.error_type == "ApiError"
        assert result.error == "upstream unavailable"
        assert result.document_id == document.id

        chunks = await ChunkRepository(session).list_for_document(document.id)
        assert [c.content for c in chunks] == ["previous content"]
        refreshed = await load_document(session, document.id)
        assert refreshed.embedded_at is None

    async def test_rate_limit_is_reported(self, session, factory, stub_adapter):
        provider = await factory.provider()
        document = await factory.document("Short", "python tips")
        await session.commit()
        stub_adapter.fail_from = 1
        stub_adapter.error = RateLimitError()

        result = await DocumentEmbeddingService(session).embed(document, ProviderConfig.model_validate(provider))

        assert result.success is False
        assert result.error_type == "RateLimitError"

    async def test_no_provider(self, session, factory):
        document = await factory.document("Short", "python tips")

        result = await DocumentEmbeddingService(session).embed(document)

        assert result.success is False
        assert result.error_type == "NoProviderError"
        assert await ChunkRepository(session).list_for_document(document.id) == []

    async def test_misconfigured_provider_is_reported(self, session, factory):
        provider = await factory.provider(provider_type="openai", embedding_model="text-embedding-3-small")
        document = await factory.document("Short", "python tips")

        result = await DocumentEmbeddingService(session).embed(document, ProviderConfig.model_validate(provider))

        assert result.success is False
        assert result.error_type == ConfigurationError.__name__

    async def test_blank_content_is_noop_success(self, session, factory, stub_adapter):
        provider = await factory.provider()
        document = await factory.document("Empty", "   \n  ")
        await factory.chunk(document, provider, "existing", chunk_index=0)

        result = await DocumentEmbeddingService(session).embed(document, ProviderConfig.model_validate(provider))

        assert result.success is True
        assert result.chunk_count == 0
        assert result.message == "No content to embed"
        assert stub_adapter.calls == []
        chunks = await ChunkRepository(session).list_for_document(document.id)
        assert [c.content for c in chunks] == ["existing"]

    async def test_question_includes_title_and_best_answer(self, session, factory, stub_adapter):
        provider = await factory.provider(chunk_size=100)
        question = await factory.document("How do I index?", "Details here.", kind="question")
        await factory.answer(question, "Top voted answer", vote_score=10)
        await factory.answer(question, "Accepted answer", vote_score=1, is_correct=True)

        result = await DocumentEmbeddingService(session).embed(question, ProviderConfig.model_validate(provider))

        assert result.success is True
        assert stub_adapter.calls == [
            "Question: How do I index? Details here. Best Answer: Accepted answer"
        ]

    async def test_uses_injected_extractor(self, session, factory, stub_adapter):
        provider = await factory.provider()
        document = await factory.document("Doc", "ignored")
        extractor = ContentExtractionService()
        extractor.extract = lambda document, best_answer=None: "garden notes"

        await DocumentEmbeddingService(session, extractor=extractor).embed(
            document, ProviderConfig.model_validate(provider)
        )

        assert stub_adapter.calls == ["garden notes"]

    async def test_unexpected_errors_propagate(self, session, factory, stub_adapter):
        provider = await factory.provider()
        document = await factory.document("Short", "python tips")
        service = DocumentEmbeddingService(session)
        service.documents.mark_embedded = AsyncMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError, match="disk full"):
            await service.embed(document, ProviderConfig.model_validate(provider))
