"""Tests for the chunking service."""

import random

import pytest

from knowledge_engine.models.chunk import ChunkPosition
from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.services.chunking_service import (
    ChunkingService,
    chunk_text,
    estimate_tokens,
    normalize_text,
)
from knowledge_engine.utils.errors import ValidationError


class TestNormalization:
    def test_collapses_whitespace(self):
        assert normalize_text("  Hello \n\n  world\t! ") == "Hello world !"

    def test_blank_input(self):
        assert normalize_text(None) == ""
        assert normalize_text("   \n ") == ""

    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens("abcd") == 2
        assert estimate_tokens("abc") == 1
        assert estimate_tokens("") == 0


class TestChunkingService:
    """Test suite for ChunkingService."""

    def test_blank_text_produces_no_chunks(self):
        svc = ChunkingService(chunk_size=10)
        assert svc.chunk_text("") == []
        assert svc.chunk_text("  \n\t ") == []
        assert svc.chunk_text(None) == []

    def test_short_text_is_single_only_chunk(self):
        svc = ChunkingService(chunk_size=10)
        chunks = svc.chunk_text("Hello   world\n")

        assert len(chunks) == 1
        assert chunks[0].chunk_index == 0
        assert chunks[0].content == "Hello world"
        assert chunks[0].position == ChunkPosition.ONLY
        assert chunks[0].metadata == {"position": "only"}

    def test_positions_and_indexes(self):
        svc = ChunkingService(chunk_size=10)
        text = " ".join(f"word{i}" for i in range(60))
        chunks = svc.chunk_text(text)

        assert len(chunks) > 2
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert chunks[0].position == ChunkPosition.START
        assert chunks[-1].position == ChunkPosition.END
        assert all(c.position == ChunkPosition.MIDDLE for c in chunks[1:-1])
        assert chunks[-1].end_offset == len(normalize_text(text))

    def test_chunks_never_exceed_window(self):
        svc = ChunkingService(chunk_size=10)
        chunks = svc.chunk_text("lorem ipsum dolor sit amet " * 20)
        assert all(0 < len(c.content) <= svc.target_chars for c in chunks)

    def test_prefers_sentence_boundary(self):
        svc = ChunkingService(chunk_size=10)
        text = "Alpha beta gamma delta epsi. Zeta eta theta iota kappa lambda mu nu."
        chunks = svc.chunk_text(text)

        assert chunks[0].content == "Alpha beta gamma delta epsi."

    def test_falls_back_to_word_boundary(self):
        svc = ChunkingService(chunk_size=10)
        text = "abcdef ghijkl mnopqr stuvwx yzabcd efghij"
        chunks = svc.chunk_text(text)

        assert [c.content for c in chunks] == ["abcdef ghijkl mnopqr stuvwx", "yzabcd efghij"]

    def test_hard_cut_without_boundaries(self):
        svc = ChunkingService(chunk_size=10)
        chunks = svc.chunk_text("x" * 100)

        assert [len(c.content) for c in chunks] == [30, 30, 30, 10]

    def test_overlap_between_chunks(self):
        svc = ChunkingService(chunk_size=10, chunk_overlap_tokens=3)
        chunks = svc.chunk_text("x" * 100)

        assert [c.start_offset for c in chunks] == [0, 21, 42, 63, 84]
        assert chunks[-1].end_offset == 100

    def test_overlap_never_stalls_progress(self):
        svc = ChunkingService(chunk_size=10, chunk_overlap_tokens=10)
        chunks = svc.chunk_text("x" * 100)

        assert [c.start_offset for c in chunks] == [0, 15, 30, 45, 60, 75]

    def test_deterministic(self):
        svc = ChunkingService(chunk_size=8, chunk_overlap_tokens=2)
        text = "The quick brown fox jumps over the lazy dog. " * 10
        assert svc.chunk_text(text) == svc.chunk_text(text)

    def test_token_counts_match_content(self):
        svc = ChunkingService(chunk_size=10)
        for chunk in svc.chunk_text("some words here " * 30):
            assert chunk.token_count == estimate_tokens(chunk.content)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"chunk_size": 0},
            {"chunk_size": -5},
            {"chunk_size": 10, "chunk_overlap_tokens": -1},
            {"chunk_size": 10, "chars_per_token": 0},
        ],
    )
    def test_invalid_sizes(self, kwargs):
        with pytest.raises(ValidationError):
            ChunkingService(**kwargs)

    def test_for_provider_uses_overlap_percentage(self):
        provider = ProviderConfig(provider_type="openai", dimensions=3, chunk_size=200, chunk_overlap=10)
        svc = ChunkingService.for_provider(provider)

        assert svc.chunk_size == 200
        assert svc.chunk_overlap_tokens == 20

    def test_module_level_helper(self):
        chunks = chunk_text("x" * 100, target_size=10, overlap_size=3)
        assert len(chunks) == 5

    @pytest.mark.parametrize(
        "chunk_size,overlap_percent,expected",
        [
            (512, 15, 77),
            (256, 15, 38),
            (10, 15, 2),
            (200, 0, 0),
        ],
    )
    def test_overlap_percentage_rounds_to_nearest_token(self, chunk_size, overlap_percent, expected):
        provider = ProviderConfig(
            provider_type="openai", dimensions=3, chunk_size=chunk_size, chunk_overlap=overlap_percent
        )
        assert ChunkingService.for_provider(provider).chunk_overlap_tokens == expected


def random_text(seed: int) -> str:
    """Words of random length with occasional sentence endings and messy whitespace."""
    rng = random.Random(seed)
    parts = []
    for _ in range(rng.randint(20, 300)):
        word = "".join(rng.choice("abcdefghij") for _ in range(rng.randint(1, 14)))
        if rng.random() < 0.15:
            word += rng.choice(".!?")
        parts.append(word)
        parts.append(rng.choice([" ", " ", "  ", "\n", "\t "]))
    return "".join(parts)


class TestChunkCoverage:
    @pytest.mark.parametrize("seed", range(25))
    @pytest.mark.parametrize("chunk_size,overlap", [(10, 0), (10, 3), (16, 8), (40, 5)])
    def test_windows_cover_normalized_text(self, seed, chunk_size, overlap):
        text = random_text(seed)
        normalized = normalize_text(text)

        chunks = ChunkingService(chunk_size, overlap).chunk_text(text)

        assert chunks[0].start_offset == 0
        assert chunks[-1].end_offset == len(normalized)
        for chunk in chunks:
            assert chunk.content == normalized[chunk.start_offset : chunk.end_offset].strip()
        for previous, following in zip(chunks, chunks[1:]):
            skipped = normalized[previous.end_offset : following.start_offset]
            assert following.start_offset <= previous.end_offset or not skipped.strip()

    def test_three_thousand_characters_with_overlap(self):
        text = ("The quick brown fox jumps over the lazy dog. " * 70)[:3000]

        chunks = chunk_text(text, 1000, 100, chars_per_token=1)

        assert 3 <= len(chunks) <= 4
        assert chunks[0].position == ChunkPosition.START
        assert chunks[-1].position == ChunkPosition.END
        assert all(c.position == ChunkPosition.MIDDLE for c in chunks[1:-1])
        for previous, following in zip(chunks, chunks[1:]):
            assert following.start_offset <= previous.end_offset
