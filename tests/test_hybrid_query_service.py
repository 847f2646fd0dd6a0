"""Tests for the hybrid query service."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from knowledge_engine.config import SearchSettings
from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.models.search import (
    QueryStatus,
    SearchMode,
    SearchParams,
    SortOrder,
    VectorQueryResult,
)
from knowledge_engine.services.search.hybrid_query_service import HybridQueryService
from knowledge_engine.utils.errors import ConfigurationError


@pytest.fixture
async def library(session, factory):
    """Articles about python and gardening; only the python ones are embedded."""
    provider = await factory.provider(similarity_threshold=0.5)
    python_tag = await factory.tag("python")
    garden_tag = await factory.tag("garden")
    guides = await factory.collection("Guides")

    intro = await factory.document(
        "Python intro", "python basics", author_id="alice", tags=[python_tag], collections=[guides], vote_score=3
    )
    advanced = await factory.document(
        "Advanced python", "python python database", author_id="bob", tags=[python_tag], vote_score=10
    )
    garden = await factory.document("Garden notes", "garden garden cooking", author_id="alice", tags=[garden_tag])
    await factory.chunk(intro, provider, "python basics")
    await factory.chunk(advanced, provider, "python python database")
    return {
        "provider": provider,
        "snapshot": ProviderConfig.model_validate(provider),
        "intro": intro,
        "advanced": advanced,
        "garden": garden,
        "guides": guides,
    }


class TestHybridQueryService:
    """Test suite for HybridQueryService."""

    async def test_empty_query_without_filters(self, session, library):
        result = await HybridQueryService(session, library["snapshot"]).search(SearchParams(q="   "))

        assert result.search_mode == SearchMode.NONE
        assert result.hits == []
        assert result.total == 0
        assert result.total_pages == 0

    async def test_vector_hits_are_used_first(self, session, library, stub_adapter):
        result = await HybridQueryService(session, library["snapshot"]).search(SearchParams(q="python"))

        assert result.search_mode == SearchMode.VECTOR
        assert result.similarity_threshold == 0.5
        assert result.total == 2
        assert result.total_pages == 1
        assert [hit.id for hit in result.hits] == [library["intro"].id, library["advanced"].id]
        assert [hit.vector_rank for hit in result.hits] == [1, 2]
        assert all(hit.keyword_rank is None for hit in result.hits)
        assert result.hits[0].vector_score == result.hits[0].score

    async def test_falls_back_to_keywords_when_vectors_miss(self, session, library, stub_adapter):
        result = await HybridQueryService(session, library["snapshot"]).search(SearchParams(q="garden"))

        assert result.search_mode == SearchMode.KEYWORD
        assert [hit.id for hit in result.hits] == [library["garden"].id]
        assert result.hits[0].keyword_rank == 1
        assert result.hits[0].vector_rank is None

    async def test_keyword_search_without_provider(self, session, library):
        result = await HybridQueryService(session, None).search(SearchParams(q="python database"))

        assert result.search_mode == SearchMode.KEYWORD
        # "advanced" matches both terms, "intro" only one
        assert [hit.id for hit in result.hits] == [library["advanced"].id, library["intro"].id]
        assert [hit.score for hit in result.hits] == [2.0, 1.0]
        assert [hit.keyword_rank for hit in result.hits] == [1, 2]

    async def test_degraded_vector_leg_falls_back(self, session, library, stub_adapter):
        stub_adapter.fail_from = 1
        stub_adapter.error = ConfigurationError("bad key")

        result = await HybridQueryService(session, library["snapshot"]).search(SearchParams(q="python"))

        assert result.search_mode == SearchMode.KEYWORD
        assert {hit.id for hit in result.hits} == {library["intro"].id, library["advanced"].id}

    async def test_vector_timeout_falls_back(self, session, library):
        async def slow_query(*args, **kwargs):
            await asyncio.sleep(1)
            return VectorQueryResult()

        vector_service = MagicMock()
        vector_service.query = slow_query
        service = HybridQueryService(session, library["snapshot"], vector_service=vector_service)
        service._settings = SearchSettings(vector_timeout=0.01)
        await session.commit()

        with patch.object(session, "rollback", AsyncMock(wraps=session.rollback)) as rollback:
            result = await service.search(SearchParams(q="python"))

        rollback.assert_awaited_once()
        assert result.search_mode == SearchMode.KEYWORD
        assert result.total == 2

    async def test_vector_hits_respect_author_and_tags(self, session, library, stub_adapter):
        service = HybridQueryService(session, library["snapshot"])

        by_author = await service.search(SearchParams(q="python", author_id="bob"))
        by_tag = await service.search(SearchParams(q="python", tags=["garden", "python"]))

        assert by_author.search_mode == SearchMode.VECTOR
        assert [hit.id for hit in by_author.hits] == [library["advanced"].id]
        assert by_tag.total == 2

    async def test_vector_hits_respect_collection(self, session, library, stub_adapter):
        result = await HybridQueryService(session, library["snapshot"]).search(
            SearchParams(q="python", collection_id=library["guides"].id)
        )

        assert result.search_mode == SearchMode.VECTOR
        assert [hit.id for hit in result.hits] == [library["intro"].id]

    async def test_filtered_out_vector_hits_fall_back(self, session, library, stub_adapter):
        result = await HybridQueryService(session, library["snapshot"]).search(
            SearchParams(q="python", author_id="nobody")
        )

        assert result.search_mode == SearchMode.KEYWORD
        assert result.hits == []
        assert result.total == 0

    @pytest.mark.parametrize(
        "sort,expected",
        [
            (SortOrder.NEWEST, ["garden", "advanced", "intro"]),
            (SortOrder.OLDEST, ["intro", "advanced", "garden"]),
            (SortOrder.VOTES, ["advanced", "intro", "garden"]),
            (SortOrder.ACTIVITY, ["garden", "advanced", "intro"]),
        ],
    )
    async def test_explicit_sort_uses_keyword_search(self, session, library, stub_adapter, sort, expected):
        result = await HybridQueryService(session, library["snapshot"]).search(
            SearchParams(author_id=None, tags=["python", "garden"], sort=sort)
        )

        assert result.search_mode == SearchMode.KEYWORD
        assert [hit.id for hit in result.hits] == [library[name].id for name in expected]
        assert all(hit.score is None and hit.keyword_rank is None for hit in result.hits)
        assert stub_adapter.calls == []

    async def test_sorted_query_ignores_relevance(self, session, library, stub_adapter):
        result = await HybridQueryService(session, library["snapshot"]).search(
            SearchParams(q="python", sort=SortOrder.NEWEST)
        )

        assert result.search_mode == SearchMode.KEYWORD
        assert result.total == 3
        assert stub_adapter.calls == []

    async def test_filter_only_request(self, session, library, stub_adapter):
        result = await HybridQueryService(session, library["snapshot"]).search(SearchParams(author_id="alice"))

        assert result.search_mode == SearchMode.KEYWORD
        assert [hit.id for hit in result.hits] == [library["garden"].id, library["intro"].id]
        assert result.hits[0].source.tags == ["garden"]
        assert stub_adapter.calls == []

    async def test_deleted_documents_are_not_returned(self, session, factory, library):
        await factory.document("Deleted python", "python", deleted=True)

        result = await HybridQueryService(session, None).search(SearchParams(q="python"))

        assert result.total == 2

    async def test_keyword_pagination(self, session, factory):
        for index in range(25):
            await factory.document(f"Note {index}", "shared words")

        service = HybridQueryService(session, None)
        first = await service.search(SearchParams(q="shared", per_page=20))
        second = await service.search(SearchParams(q="shared", page=2, per_page=20))

        assert first.total == 25
        assert first.total_pages == 2
        assert len(first.hits) == 20
        assert len(second.hits) == 5
        assert second.hits[0].keyword_rank == 21

    async def test_vector_pagination(self, session, factory, stub_adapter):
        provider = await factory.provider()
        for index in range(25):
            document = await factory.document(f"Python {index}", "python")
            await factory.chunk(document, provider, "python")

        service = HybridQueryService(session, ProviderConfig.model_validate(provider))
        second = await service.search(SearchParams(q="python", page=2))

        assert second.search_mode == SearchMode.VECTOR
        assert second.total == 25
        assert second.total_pages == 2
        assert [hit.vector_rank for hit in second.hits] == [21, 22, 23, 24, 25]

    async def test_failure_returns_error_mode(self, session, library):
        vector_service = MagicMock()
        vector_service.query = AsyncMock(return_value=VectorQueryResult(status=QueryStatus.OK))
        service = HybridQueryService(session, library["snapshot"], vector_service=vector_service)
        service.documents.keyword_search = AsyncMock(side_effect=RuntimeError("database unavailable"))

        result = await service.search(SearchParams(q="python"))

        assert result.search_mode == SearchMode.ERROR
        assert result.hits == []
        assert result.cause == "database unavailable"

    @pytest.mark.parametrize("per_page,expected", [(None, 20), (5, 20), (50, 50), (500, 100)])
    def test_clamp_per_page(self, per_page, expected):
        assert HybridQueryService.clamp_per_page(per_page) == expected

    @pytest.mark.parametrize("page,expected", [(None, 1), (0, 1), (-2, 1), (3, 3)])
    def test_clamp_page(self, page, expected):
        assert HybridQueryService.clamp_page(page) == expected
