"""Chunk models."""

from enum import Enum

from pydantic import BaseModel, Field


class ChunkPosition(str, Enum):
    """Where a chunk sits within its document."""

    START = "start"
    MIDDLE = "middle"
    END = "end"
    ONLY = "only"


class TextChunk(BaseModel):
    """A chunk of text produced by the chunking service."""

    chunk_index: int = Field(..., ge=0, description="0-based index of this chunk within the document")
    content: str = Field(..., description="Chunk text content")
    token_count: int = Field(..., ge=0, description="Estimated token count of the chunk text")
    position: ChunkPosition = Field(..., description="Position label within the document")
    start_offset: int = Field(
        default=0, ge=0, description="Character offset of the chunk window in the normalized text"
    )
    end_offset: int = Field(
        default=0, ge=0, description="Character offset where the chunk window ends in the normalized text"
    )

    @property
    def metadata(self) -> dict:
        return {"position": self.position.value}
