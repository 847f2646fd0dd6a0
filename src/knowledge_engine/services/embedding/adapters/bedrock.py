"""AWS Bedrock embedding adapter."""

import asyncio
import json
from typing import Any, Dict, List

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from knowledge_engine.services.embedding.adapters.base import EmbeddingAdapter
from knowledge_engine.utils.errors import RateLimitError

DEFAULT_REGION = "us-east-1"

_THROTTLING_CODES = {"ThrottlingException", "TooManyRequestsException"}
_CONFIGURATION_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "ResourceNotFoundException",
    "ValidationException",
}


class BedrockAdapter(EmbeddingAdapter):
    """
    Embeddings via Bedrock runtime, one invocation per text.

    ``api_key`` holds ``ACCESS_KEY_ID:SECRET_ACCESS_KEY``; the region comes from
    the provider's ``region`` setting.
    """

    provider_type = "bedrock"
    supports_batch = False

    def __init__(self, provider):
        super().__init__(provider)
        self._client = None  # lazy

    def validate_configuration(self) -> None:
        super().validate_configuration()
        if ":" not in (self.provider.api_key or ""):
            raise self._config_error("Bedrock API key must be ACCESS_KEY_ID:SECRET_ACCESS_KEY")

    def _get_client(self):
        if self._client is None:
            access_key, secret_key = self.provider.api_key.split(":", 1)
            self._client = boto3.client(
                "bedrock-runtime",
                region_name=self.provider.settings.get("region") or DEFAULT_REGION,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                config=Config(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"max_attempts": 1},
                ),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _request_body(self, text: str) -> Dict[str, Any]:
        if self.model.startswith("cohere."):
            return {"texts": [text], "input_type": "search_document", "truncate": "END"}
        body: Dict[str, Any] = {"inputText": text}
        if self.model.startswith("amazon.titan-embed-text-v2"):
            body["dimensions"] = self.dimensions
            body["normalize"] = True
        return body

    def _parse_response(self, payload: Dict[str, Any]) -> List[float]:
        if "embedding" in payload:
            return payload["embedding"]
        embeddings = payload.get("embeddings")
        if isinstance(embeddings, dict):
            embeddings = embeddings.get("float")
        if embeddings:
            return embeddings[0]
        raise self._api_error("Bedrock response is missing embeddings")

    def _invoke(self, text: str) -> List[float]:
        client = self._get_client()
        try:
            response = client.invoke_model(
                modelId=self.model,
                body=json.dumps(self._request_body(text)),
                contentType="application/json",
                accept="application/json",
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _THROTTLING_CODES:
                raise RateLimitError(
                    f"{self.provider_type} rate limit exceeded", provider_type=self.provider_type, model=self.model
                ) from e
            if code in _CONFIGURATION_CODES:
                raise self._config_error(f"Bedrock rejected the request ({code}): {e}") from e
            raise self._api_error(f"Bedrock API error ({code}): {e}") from e
        except BotoCoreError as e:
            raise self._api_error(f"Bedrock request failed: {e}") from e

        payload = json.loads(response["body"].read())
        return self._parse_response(payload)

    async def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        vectors = []
        for text in batch:
            vectors.append(await asyncio.to_thread(self._invoke, text))
        return vectors
