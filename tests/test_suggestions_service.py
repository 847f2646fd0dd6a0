"""Tests for query suggestions."""

from unittest.mock import AsyncMock

from knowledge_engine.services.search.suggestions_service import SuggestionsService


class TestSuggestionsService:
    async def test_matches_titles_shortest_first(self, session, factory):
        await factory.document("Installing Python on Windows", kind="question")
        await factory.document("Python")
        await factory.document("Cooking basics")

        result = await SuggestionsService(session).suggest("pyth")

        assert [s.title for s in result.suggestions] == ["Python", "Installing Python on Windows"]
        assert result.suggestions[1].kind == "question"

    async def test_blank_prefix(self, session, factory):
        await factory.document("Python")

        result = await SuggestionsService(session).suggest("  ")

        assert result.suggestions == []

    async def test_wildcards_match_literally(self, session, factory):
        await factory.document("100% coverage")
        await factory.document("1000 tests")

        result = await SuggestionsService(session).suggest("100%")

        assert [s.title for s in result.suggestions] == ["100% coverage"]

    async def test_scoped_to_collection(self, session, factory):
        guides = await factory.collection("Guides")
        await factory.document("Python guide", collections=[guides])
        await factory.document("Python notes")

        result = await SuggestionsService(session).suggest("python", collection_id=guides.id)

        assert [s.title for s in result.suggestions] == ["Python guide"]

    async def test_skips_deleted_and_limits(self, session, factory):
        await factory.document("Python deleted", deleted=True)
        for index in range(8):
            await factory.document(f"Python {index}")

        result = await SuggestionsService(session).suggest("python")

        assert len(result.suggestions) == 5
        assert "Python deleted" not in [s.title for s in result.suggestions]

    async def test_storage_failure_returns_nothing(self, session):
        service = SuggestionsService(session)
        service.documents.suggest_titles = AsyncMock(side_effect=RuntimeError("boom"))

        result = await service.suggest("python")

        assert result.suggestions == []
