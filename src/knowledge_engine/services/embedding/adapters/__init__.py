"""Embedding provider adapters."""

from knowledge_engine.services.embedding.adapters.base import EmbeddingAdapter
from knowledge_engine.services.embedding.adapters.bedrock import BedrockAdapter
from knowledge_engine.services.embedding.adapters.cohere import CohereAdapter
from knowledge_engine.services.embedding.adapters.huggingface import HuggingFaceAdapter
from knowledge_engine.services.embedding.adapters.ollama import OllamaAdapter
from knowledge_engine.services.embedding.adapters.openai import AzureOpenAIAdapter, OpenAIAdapter

__all__ = [
    "AzureOpenAIAdapter",
    "BedrockAdapter",
    "CohereAdapter",
    "EmbeddingAdapter",
    "HuggingFaceAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
]
