"""Ollama (local model server) embedding adapter."""

from typing import List

import httpx

from knowledge_engine.services.embedding.adapters.base import EmbeddingAdapter
from knowledge_engine.utils.errors import ConfigurationError


class OllamaAdapter(EmbeddingAdapter):
    """Embeddings via a local Ollama server, one request per text."""

    provider_type = "ollama"
    supports_batch = False

    @property
    def url(self) -> str:
        return f"{self.provider.api_endpoint.rstrip('/')}/api/embed"

    async def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        vectors = []
        for text in batch:
            data = await self._post_json(self.url, {"model": self.model, "input": text})
            embeddings = data.get("embeddings") if isinstance(data, dict) else None
            if not embeddings:
                raise self._api_error("Ollama response is missing embeddings")
            vectors.append(embeddings[0])
        return vectors

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code == 404:
            raise self._config_error(
                f"Model '{self.model}' not found on Ollama server. Run: ollama pull {self.model}"
            )
        super()._raise_for_status(response)

    def _connection_error(self, url: str, error: Exception) -> ConfigurationError:
        return self._config_error(f"Cannot connect to Ollama at {self.provider.api_endpoint}: {error}")
