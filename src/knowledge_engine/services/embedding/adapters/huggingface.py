"""Hugging Face hub embedding adapter."""

from typing import Any, List

import numpy as np

from knowledge_engine.services.embedding.adapters.base import EmbeddingAdapter

DEFAULT_HUGGINGFACE_URL = "https://api-inference.huggingface.co"


class HuggingFaceAdapter(EmbeddingAdapter):
    """Embeddings via the hosted feature-extraction pipeline."""

    provider_type = "huggingface"
    max_batch_size = 32

    @property
    def url(self) -> str:
        base = (self.provider.api_endpoint or DEFAULT_HUGGINGFACE_URL).rstrip("/")
        return f"{base}/pipeline/feature-extraction/{self.model}"

    async def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        data = await self._post_json(
            self.url,
            {"inputs": batch, "options": {"wait_for_model": True}},
            headers={"Authorization": f"Bearer {self.provider.api_key}"},
        )
        if not isinstance(data, list):
            raise self._api_error("Hugging Face response is not a list of embeddings")
        return [self._pool(item) for item in data]

    def _pool(self, item: Any) -> List[float]:
        """Mean-pool token embeddings when the model returns one vector per token."""
        array = np.asarray(item, dtype=float)
        if array.ndim == 1:
            return array.tolist()
        if array.ndim == 2:
            return array.mean(axis=0).tolist()
        raise self._api_error(
            "Unexpected Hugging Face embedding shape", details={"shape": list(array.shape)}
        )
