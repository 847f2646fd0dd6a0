"""Cohere embedding adapter."""

from typing import Any, Dict, List

from knowledge_engine.services.embedding.adapters.base import EmbeddingAdapter

DEFAULT_COHERE_URL = "https://api.cohere.ai/v1/embed"


class CohereAdapter(EmbeddingAdapter):
    """Embeddings via the Cohere embed endpoint."""

    provider_type = "cohere"
    max_batch_size = 96

    @property
    def url(self) -> str:
        return self.provider.api_endpoint or DEFAULT_COHERE_URL

    def _payload(self, batch: List[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "texts": batch,
            "input_type": "search_document",
            "truncate": "END",
        }
        if "v3" in self.model:
            payload["embedding_types"] = ["float"]
        return payload

    async def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        data = await self._post_json(
            self.url,
            self._payload(batch),
            headers={
                "Authorization": f"Bearer {self.provider.api_key}",
                "Content-Type": "application/json",
            },
        )
        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if isinstance(embeddings, dict):
            embeddings = embeddings.get("float")
        if not isinstance(embeddings, list):
            raise self._api_error("Cohere response is missing embeddings")
        return embeddings
