"""OpenAI and Azure OpenAI embedding adapters."""

from typing import Any, Dict, List

import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from knowledge_engine.services.embedding.adapters.base import EmbeddingAdapter
from knowledge_engine.utils.errors import ApiError, RateLimitError

DEFAULT_AZURE_API_VERSION = "2024-02-01"


class OpenAIAdapter(EmbeddingAdapter):
    """Embeddings via the OpenAI API."""

    provider_type = "openai"
    max_batch_size = 2048

    def __init__(self, provider):
        super().__init__(provider)
        self._client = None  # lazy

    def _get_client(self):
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.provider.api_key,
                base_url=self.provider.api_endpoint or None,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _request_options(self) -> Dict[str, Any]:
        # Only the v3 models accept a dimensions parameter
        if self.model.startswith("text-embedding-3"):
            return {"dimensions": self.dimensions}
        return {}

    async def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        client = self._get_client()
        try:
            response = await client.embeddings.create(
                model=self.model,
                input=batch,
                **self._request_options(),
            )
        except openai.RateLimitError as e:
            raise RateLimitError(
                f"{self.provider_type} rate limit exceeded", provider_type=self.provider_type, model=self.model
            ) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise self._config_error(f"Invalid API key for {self.provider_type}") from e
        except openai.NotFoundError as e:
            raise self._config_error(f"Model '{self.model}' not found for {self.provider_type}") from e
        except openai.APIStatusError as e:
            raise ApiError(
                f"{self.provider_type} API error ({e.status_code}): {e.message}",
                provider_type=self.provider_type,
                model=self.model,
                http_status=e.status_code,
            ) from e
        except openai.APIError as e:
            raise self._api_error(f"{self.provider_type} request failed: {e}") from e

        data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in data]


class AzureOpenAIAdapter(OpenAIAdapter):
    """Embeddings via an Azure OpenAI deployment (``embedding_model`` is the deployment name)."""

    provider_type = "azure_openai"

    def _get_client(self):
        if self._client is None:
            self._client = AsyncAzureOpenAI(
                api_key=self.provider.api_key,
                azure_endpoint=self.provider.api_endpoint,
                api_version=self.provider.settings.get("api_version") or DEFAULT_AZURE_API_VERSION,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client
