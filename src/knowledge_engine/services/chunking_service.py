"""Text chunking service for RAG embedding."""

import math
import re
from typing import List, Optional

from knowledge_engine.models.chunk import ChunkPosition, TextChunk
from knowledge_engine.models.provider import CHARS_PER_TOKEN, ProviderConfig
from knowledge_engine.utils.errors import ValidationError
from knowledge_engine.utils.logging import get_logger

logger = get_logger("chunking_service")

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = ".!?"

# Fraction of the window searched for a sentence ending
BREAK_SEARCH_FRACTION = 0.2
# Characters searched backwards for a word boundary
WORD_BOUNDARY_LOOKBACK = 50
# Minimum advance per step as a fraction of the window
MIN_ADVANCE_FRACTION = 0.5


def normalize_text(text: Optional[str]) -> str:
    """Collapse whitespace runs to single spaces and strip."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate token count from character length."""
    return math.ceil(len(text) / chars_per_token)


class ChunkingService:
    """
    Split text into overlapping chunks sized in token-equivalents.

    Chunks try to end on a sentence boundary within the trailing 20% of the
    window, then on a word boundary, then hard-cut. Consecutive windows overlap
    by ``chunk_overlap_tokens`` but always advance by at least half a window.
    Pure and deterministic; never calls a provider.
    """

    def __init__(
        self,
        chunk_size: int,
        chunk_overlap_tokens: int = 0,
        chars_per_token: int = CHARS_PER_TOKEN,
    ):
        """
        Initialize the chunking service.

        Args:
            chunk_size: Target chunk size in tokens
            chunk_overlap_tokens: Overlap between consecutive chunks in tokens
            chars_per_token: Characters per token used to size windows

        Raises:
            ValidationError: If sizes are not positive
        """
        if chunk_size <= 0:
            raise ValidationError("chunk_size must be > 0", details={"chunk_size": chunk_size})
        if chunk_overlap_tokens < 0:
            raise ValidationError(
                "chunk_overlap_tokens must be >= 0",
                details={"chunk_overlap_tokens": chunk_overlap_tokens},
            )
        if chars_per_token <= 0:
            raise ValidationError("chars_per_token must be > 0", details={"chars_per_token": chars_per_token})

        self.chunk_size = chunk_size
        self.chunk_overlap_tokens = chunk_overlap_tokens
        self.chars_per_token = chars_per_token

    @classmethod
    def for_provider(cls, provider: ProviderConfig) -> "ChunkingService":
        """Build a chunker from a provider's chunk size and overlap policy."""
        return cls(provider.chunk_size, provider.chunk_overlap_tokens)

    @property
    def target_chars(self) -> int:
        return self.chunk_size * self.chars_per_token

    @property
    def overlap_chars(self) -> int:
        return self.chunk_overlap_tokens * self.chars_per_token

    def chunk_text(self, text: Optional[str]) -> List[TextChunk]:
        """
        Split text into ordered chunks.

        Args:
            text: Raw document text

        Returns:
            Ordered list of TextChunk; empty for blank input
        """
        normalized = normalize_text(text)
        if not normalized:
            return []

        length = len(normalized)
        target_chars = self.target_chars
        overlap_chars = self.overlap_chars

        if length <= target_chars:
            return [self._build_chunk(0, normalized, ChunkPosition.ONLY, 0, length)]

        min_advance = max(1, int(target_chars * MIN_ADVANCE_FRACTION))
        chunks: List[TextChunk] = []
        start = 0

        while start < length:
            end = min(start + target_chars, length)
            if end < length:
                end = self._find_break_point(normalized, start, end)

            content = normalized[start:end].strip()
            if content:
                if not chunks:
                    position = ChunkPosition.START
                elif end >= length:
                    position = ChunkPosition.END
                else:
                    position = ChunkPosition.MIDDLE
                chunks.append(self._build_chunk(len(chunks), content, position, start, end))

            if end >= length:
                break

            start = max(end - overlap_chars, start + min_advance)

        logger.debug(
            f"Chunked text: chars={length}, chunks={len(chunks)}, "
            f"target_chars={target_chars}, overlap_chars={overlap_chars}"
        )
        return chunks

    def _build_chunk(
        self, index: int, content: str, position: ChunkPosition, start: int, end: int
    ) -> TextChunk:
        return TextChunk(
            chunk_index=index,
            content=content,
            token_count=estimate_tokens(content, self.chars_per_token),
            position=position,
            start_offset=start,
            end_offset=end,
        )

    def _find_break_point(self, text: str, start: int, end: int) -> int:
        """Pick where a non-final chunk ends: sentence, then word boundary, then hard cut."""
        target_chars = self.target_chars
        search_start = max(end - int(target_chars * BREAK_SEARCH_FRACTION), start)

        sentence_pos = self._last_sentence_ending(text, search_start, end)
        if sentence_pos is not None:
            return sentence_pos + 1

        floor = start + max(1, int(target_chars * MIN_ADVANCE_FRACTION))
        return self._find_word_boundary(text, end, floor)

    @staticmethod
    def _last_sentence_ending(text: str, search_start: int, end: int) -> Optional[int]:
        """Index of the last whitespace preceded by sentence punctuation in [search_start, end)."""
        pos = end - 1
        while pos > search_start:
            if text[pos].isspace() and text[pos - 1] in _SENTENCE_END:
                return pos
            pos -= 1
        return None

    @staticmethod
    def _find_word_boundary(text: str, pos: int, floor: int) -> int:
        """Last space within the lookback window, never before ``floor``."""
        if pos >= len(text) or text[pos] == " ":
            return pos
        for offset in range(WORD_BOUNDARY_LOOKBACK):
            check = pos - offset
            if check <= floor:
                break
            if text[check] == " ":
                return check + 1
        return pos


def chunk_text(
    text: Optional[str],
    target_size: int,
    overlap_size: int = 0,
    chars_per_token: int = CHARS_PER_TOKEN,
) -> List[TextChunk]:
    """
    Split text into overlapping chunks.

    Args:
        text: Raw text
        target_size: Target chunk size in tokens
        overlap_size: Overlap in tokens
        chars_per_token: Characters per token used to size windows

    Returns:
        Ordered list of TextChunk
    """
    return ChunkingService(target_size, overlap_size, chars_per_token).chunk_text(text)
