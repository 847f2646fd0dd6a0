"""Result models for embedding and provider operations."""

from typing import List, Optional

from pydantic import BaseModel, Field


class EmbedResult(BaseModel):
    """Result of materializing the chunks of one document."""

    success: bool = Field(..., description="Whether the document's chunk set was replaced")
    document_id: Optional[str] = None
    chunk_count: int = Field(default=0, ge=0)
    error: Optional[str] = Field(default=None, description="Error message on failure")
    error_type: Optional[str] = Field(default=None, description="Exception class name on failure")
    message: Optional[str] = None


class RegenerateResult(BaseModel):
    """Result of invalidating chunks after a provider switch."""

    provider_id: str
    deleted_chunks: int = 0
    reset_documents: int = 0
    document_ids: List[str] = Field(default_factory=list, description="Documents needing embedding")


class ActivationResult(BaseModel):
    """Result of activating a provider."""

    provider_id: str
    previous_provider_id: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.previous_provider_id != self.provider_id
