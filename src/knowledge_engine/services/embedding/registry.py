"""Adapter registry keyed by provider type."""

from typing import Dict, Type

from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.services.embedding.adapters import (
    AzureOpenAIAdapter,
    BedrockAdapter,
    CohereAdapter,
    EmbeddingAdapter,
    HuggingFaceAdapter,
    OllamaAdapter,
    OpenAIAdapter,
)
from knowledge_engine.utils.errors import ConfigurationError

ADAPTERS: Dict[str, Type[EmbeddingAdapter]] = {
    "openai": OpenAIAdapter,
    "cohere": CohereAdapter,
    "ollama": OllamaAdapter,
    "azure_openai": AzureOpenAIAdapter,
    "bedrock": BedrockAdapter,
    "huggingface": HuggingFaceAdapter,
}


def build_adapter(provider: ProviderConfig) -> EmbeddingAdapter:
    """Construct the adapter for a provider; unknown types fail here, not at call time."""
    adapter_class = ADAPTERS.get(provider.provider_type)
    if adapter_class is None:
        raise ConfigurationError(
            f"Unknown provider type: {provider.provider_type}",
            provider_type=provider.provider_type,
            model=provider.embedding_model,
        )
    return adapter_class(provider)
