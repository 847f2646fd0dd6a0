"""Base class for embedding provider adapters."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, wait_exponential

from knowledge_engine.config import get_settings
from knowledge_engine.models.provider import MAX_DIMENSIONS, ProviderConfig
from knowledge_engine.utils.errors import ApiError, ConfigurationError, RateLimitError
from knowledge_engine.utils.logging import get_logger

logger = get_logger("embedding.adapter")

TRUNCATION_MARKER = "..."


class EmbeddingAdapter(ABC):
    """
    Uniform contract over one embedding backend.

    Subclasses implement ``_embed_batch`` (request/response marshaling only).
    This class validates configuration at construction, truncates oversized
    inputs, batches, checks response shape and retries rate-limit and API
    errors with exponential backoff.
    """

    provider_type: str = ""
    # Backends without batch support get one request per text
    supports_batch: bool = True
    max_batch_size: Optional[int] = None

    def __init__(self, provider: ProviderConfig):
        self.provider = provider
        self._settings = get_settings().embedding
        self.retry_wait = wait_exponential(
            multiplier=self._settings.backoff_min,
            min=self._settings.backoff_min,
            max=self._settings.backoff_max,
        )
        self.validate_configuration()

    @property
    def model(self) -> str:
        return self.provider.embedding_model

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions

    @property
    def timeout(self) -> float:
        return self.provider.timeout or self._settings.timeout

    @property
    def batch_size(self) -> int:
        if not self.supports_batch:
            return 1
        size = max(1, self._settings.batch_size)
        if self.max_batch_size:
            size = min(size, self.max_batch_size)
        return size

    def validate_configuration(self) -> None:
        """Fail fast on configuration that can never produce a valid request."""
        if not self.model:
            raise self._config_error("Embedding model is required")
        if not 0 < self.dimensions <= MAX_DIMENSIONS:
            raise self._config_error(
                f"Dimensions must be between 1 and {MAX_DIMENSIONS}",
                details={"dimensions": self.dimensions},
            )
        if self.provider.requires_api_key and not self.provider.api_key:
            raise self._config_error(f"API key is required for {self.provider_type}")
        if self.provider.requires_api_endpoint and not self.provider.api_endpoint:
            raise self._config_error(f"API endpoint is required for {self.provider_type}")

    def truncate(self, text: str) -> str:
        """Truncate text longer than the model's input limit, keeping a trailing marker."""
        max_chars = self.provider.max_input_chars
        if len(text) <= max_chars:
            return text
        logger.debug(
            f"Truncating embedding input: provider={self.provider_type}, "
            f"chars={len(text)}, max_chars={max_chars}"
        )
        return text[: max_chars - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER

    async def embed(self, texts: Union[str, Sequence[str]]) -> List[List[float]]:
        """
        Embed texts, preserving order.

        Args:
            texts: One text or a sequence of texts

        Returns:
            One vector per input text

        Raises:
            ConfigurationError: Credential, model or endpoint problem
            RateLimitError: Rate limit persisted through all attempts
            ApiError: Request or response failure persisted through all attempts
        """
        if isinstance(texts, str):
            texts = [texts]
        if not texts:
            return []

        prepared = [self.truncate(text or "") for text in texts]
        vectors: List[List[float]] = []
        step = self.batch_size
        for start in range(0, len(prepared), step):
            batch = prepared[start : start + step]
            vectors.extend(await self._embed_batch_with_retry(batch))
        return vectors

    async def embed_one(self, text: str) -> List[float]:
        """Embed a single text."""
        vectors = await self.embed([text])
        return vectors[0]

    async def _embed_batch_with_retry(self, batch: List[str]) -> List[List[float]]:
        """Embed a batch, retrying rate limits and transient API failures."""
        failures: Dict[type, int] = {}
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=lambda retry_state: self._should_stop(retry_state, failures),
            wait=self.retry_wait,
            retry=retry_if_exception_type(ApiError),
            before_sleep=self._log_retry,
        ):
            with attempt:
                vectors = await self._embed_batch(batch)
                self._validate_vectors(vectors, len(batch))
                return vectors
        raise ApiError("Embedding retries exhausted", provider_type=self.provider_type, model=self.model)

    def _should_stop(self, retry_state: RetryCallState, failures: Dict[type, int]) -> bool:
        """Stop once one error class has used up its own attempt budget."""
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, RateLimitError):
            kind, limit = RateLimitError, self._settings.rate_limit_attempts
        else:
            kind, limit = ApiError, self._settings.api_error_attempts
        failures[kind] = failures.get(kind, 0) + 1
        return failures[kind] >= limit

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Embedding request failed, retrying: provider={self.provider_type}, model={self.model}, "
            f"attempt={retry_state.attempt_number}, error={type(error).__name__}: {error}"
        )

    def _validate_vectors(self, vectors: Any, expected: int) -> None:
        if not isinstance(vectors, list) or len(vectors) != expected:
            got = len(vectors) if isinstance(vectors, list) else None
            raise self._api_error(
                "Embedding response size mismatch",
                details={"expected": expected, "got": got},
            )
        for vector in vectors:
            if len(vector) != self.dimensions:
                raise self._config_error(
                    "Embedding dimension mismatch",
                    details={"expected_dimension": self.dimensions, "actual_dimension": len(vector)},
                )

    async def aclose(self) -> None:
        """Release backend clients; adapters holding none have nothing to do."""

    @abstractmethod
    async def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        """Send one request and return its vectors in input order."""

    # HTTP helpers for httpx-based adapters

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=headers or {})
        except httpx.ConnectError as e:
            raise self._connection_error(url, e) from e
        except httpx.TimeoutException as e:
            raise self._api_error(f"{self.provider_type} request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise self._api_error(f"{self.provider_type} request failed: {e}") from e

        self._raise_for_status(response)
        try:
            return response.json()
        except ValueError as e:
            raise self._api_error(f"Invalid JSON response from {self.provider_type}") from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        body = self._error_body(response)
        if status == 429:
            raise RateLimitError(
                f"{self.provider_type} rate limit exceeded",
                provider_type=self.provider_type,
                model=self.model,
            )
        if status in (401, 403):
            raise self._config_error(f"Invalid API key for {self.provider_type}")
        raise ApiError(
            f"{self.provider_type} API error ({status}): {body}",
            provider_type=self.provider_type,
            model=self.model,
            http_status=status,
        )

    def _connection_error(self, url: str, error: Exception) -> Exception:
        return self._api_error(f"Cannot connect to {self.provider_type} at {url}: {error}")

    @staticmethod
    def _error_body(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return str(response.text)[:200]
        if isinstance(data, dict):
            error = data.get("error") or data.get("message")
            if isinstance(error, dict):
                error = error.get("message")
            if error:
                return str(error)[:200]
        return str(data)[:200]

    def _config_error(self, message: str, details: Optional[Dict[str, Any]] = None) -> ConfigurationError:
        return ConfigurationError(message, provider_type=self.provider_type, model=self.model, details=details)

    def _api_error(self, message: str, details: Optional[Dict[str, Any]] = None) -> ApiError:
        return ApiError(message, provider_type=self.provider_type, model=self.model, details=details)
