"""Embedding provider catalog and configuration snapshot."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

PROVIDER_TYPES = ("openai", "cohere", "ollama", "azure_openai", "bedrock", "huggingface")

# Average characters per token (conservative estimate)
CHARS_PER_TOKEN = 3

MAX_DIMENSIONS = 4096
DEFAULT_MAX_TOKENS = 512
FALLBACK_SIMILARITY_THRESHOLD = 0.3

# Available models per provider with their dimensions
MODELS: Dict[str, Dict[str, int]] = {
    "openai": {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    },
    "cohere": {
        "embed-english-v3.0": 1024,
        "embed-multilingual-v3.0": 1024,
        "embed-english-light-v3.0": 384,
        "embed-multilingual-light-v3.0": 384,
    },
    "ollama": {
        "embeddinggemma": 768,
        "nomic-embed-text": 768,
        "mxbai-embed-large": 1024,
        "all-minilm": 384,
        "snowflake-arctic-embed": 1024,
    },
    "azure_openai": {
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    },
    "bedrock": {
        "amazon.titan-embed-text-v1": 1536,
        "amazon.titan-embed-text-v2:0": 1024,
        "cohere.embed-english-v3": 1024,
        "cohere.embed-multilingual-v3": 1024,
    },
    "huggingface": {
        "sentence-transformers/all-MiniLM-L6-v2": 384,
        "sentence-transformers/all-mpnet-base-v2": 768,
        "BAAI/bge-small-en-v1.5": 384,
        "BAAI/bge-base-en-v1.5": 768,
    },
}

# Score distributions differ per model, so thresholds are tuned per model
DEFAULT_SIMILARITY_THRESHOLDS: Dict[str, float] = {
    "text-embedding-3-small": 0.28,
    "text-embedding-3-large": 0.28,
    "text-embedding-ada-002": 0.28,
    "embed-english-v3.0": 0.30,
    "embed-multilingual-v3.0": 0.30,
    "embed-english-light-v3.0": 0.28,
    "embed-multilingual-light-v3.0": 0.28,
    "embeddinggemma": 0.38,
    "nomic-embed-text": 0.42,
    "mxbai-embed-large": 0.35,
    "all-minilm": 0.30,
    "snowflake-arctic-embed": 0.32,
    "amazon.titan-embed-text-v1": 0.25,
    "amazon.titan-embed-text-v2:0": 0.25,
    "cohere.embed-english-v3": 0.30,
    "cohere.embed-multilingual-v3": 0.30,
    "sentence-transformers/all-MiniLM-L6-v2": 0.30,
    "sentence-transformers/all-mpnet-base-v2": 0.32,
    "BAAI/bge-small-en-v1.5": 0.32,
    "BAAI/bge-base-en-v1.5": 0.32,
}

PROVIDER_TYPE_THRESHOLDS: Dict[str, float] = {
    "openai": 0.28,
    "cohere": 0.30,
    "azure_openai": 0.28,
    "bedrock": 0.25,
    "huggingface": 0.30,
    "ollama": 0.35,
}

# Maximum input length in tokens per model
MAX_TOKENS: Dict[str, int] = {
    "text-embedding-3-small": 8191,
    "text-embedding-3-large": 8191,
    "text-embedding-ada-002": 8191,
    "embed-english-v3.0": 512,
    "embed-multilingual-v3.0": 512,
    "embed-english-light-v3.0": 512,
    "embed-multilingual-light-v3.0": 512,
    "embeddinggemma": 2048,
    "nomic-embed-text": 600,
    "mxbai-embed-large": 512,
    "all-minilm": 256,
    "snowflake-arctic-embed": 512,
    "amazon.titan-embed-text-v1": 8000,
    "amazon.titan-embed-text-v2:0": 8000,
    "cohere.embed-english-v3": 512,
    "cohere.embed-multilingual-v3": 512,
    "sentence-transformers/all-MiniLM-L6-v2": 256,
    "sentence-transformers/all-mpnet-base-v2": 384,
    "BAAI/bge-small-en-v1.5": 512,
    "BAAI/bge-base-en-v1.5": 512,
}

DEFAULT_ENDPOINTS: Dict[str, Optional[str]] = {
    "ollama": "http://localhost:11434",
    "azure_openai": None,
}

API_KEY_PROVIDERS = ("openai", "cohere", "azure_openai", "bedrock", "huggingface")
ENDPOINT_PROVIDERS = ("ollama", "azure_openai")


def default_similarity_threshold(provider_type: str, model: Optional[str]) -> float:
    """Threshold for a model, falling back to its provider type, then the global fallback."""
    if model and model in DEFAULT_SIMILARITY_THRESHOLDS:
        return DEFAULT_SIMILARITY_THRESHOLDS[model]
    return PROVIDER_TYPE_THRESHOLDS.get(provider_type, FALLBACK_SIMILARITY_THRESHOLD)


def model_dimensions(provider_type: str, model: Optional[str]) -> Optional[int]:
    """Known dimensions of a catalog model, if any."""
    return MODELS.get(provider_type, {}).get(model or "")


def requires_api_key(provider_type: str) -> bool:
    return provider_type in API_KEY_PROVIDERS


def requires_api_endpoint(provider_type: str) -> bool:
    return provider_type in ENDPOINT_PROVIDERS


class ProviderConfig(BaseModel):
    """
    Immutable snapshot of an embedding provider row.

    Pipeline and query services receive one of these explicitly rather than
    reading the enabled provider from global state.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[str] = Field(default=None, description="Provider row ID")
    name: str = Field(default="", description="Display name")
    provider_type: str = Field(..., description="Backend type, e.g. openai or ollama")
    embedding_model: str = Field(default="", description="Model name sent to the backend")
    dimensions: int = Field(..., description="Vector dimensionality")
    api_key: Optional[str] = Field(default=None, repr=False, description="Credential")
    api_endpoint: Optional[str] = Field(default=None, description="Base URL for endpoint-based backends")
    chunk_size: int = Field(default=512, gt=0, description="Chunk size in tokens")
    chunk_overlap: int = Field(default=10, ge=0, description="Chunk overlap as a percentage of chunk size")
    settings: Dict[str, Any] = Field(default_factory=dict, description="Provider-specific settings")

    @property
    def similarity_threshold(self) -> float:
        value = (self.settings or {}).get("similarity_threshold")
        if value is not None and value != "":
            return float(value)
        return default_similarity_threshold(self.provider_type, self.embedding_model)

    @property
    def max_tokens(self) -> int:
        return MAX_TOKENS.get(self.embedding_model, DEFAULT_MAX_TOKENS)

    @property
    def max_input_chars(self) -> int:
        return self.max_tokens * CHARS_PER_TOKEN

    @property
    def chunk_overlap_tokens(self) -> int:
        # Rounded half up: 15% of 512 is 77
        return int(self.chunk_size * self.chunk_overlap / 100 + 0.5)

    @property
    def timeout(self) -> Optional[float]:
        value = (self.settings or {}).get("timeout")
        return float(value) if value else None

    @property
    def requires_api_key(self) -> bool:
        return requires_api_key(self.provider_type)

    @property
    def requires_api_endpoint(self) -> bool:
        return requires_api_endpoint(self.provider_type)


class ProviderCreate(BaseModel):
    """Request body for creating a provider."""

    name: str = Field(..., min_length=1, max_length=255)
    provider_type: str = Field(..., description=f"One of: {', '.join(PROVIDER_TYPES)}")
    embedding_model: str = Field(..., min_length=1)
    dimensions: Optional[int] = Field(default=None, description="Required when the model is not in the catalog")
    api_key: Optional[str] = None
    api_endpoint: Optional[str] = None
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None
    similarity_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class ProviderUpdate(BaseModel):
    """Request body for updating a provider; type, model and dimensions are fixed."""

    name: Optional[str] = None
    api_key: Optional[str] = None
    api_endpoint: Optional[str] = None
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None
    similarity_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class ProviderResponse(BaseModel):
    """Provider as returned by the API; the credential is never echoed."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    provider_type: str
    embedding_model: str
    dimensions: int
    api_endpoint: Optional[str] = None
    enabled: bool
    chunk_size: int
    chunk_overlap: int
    similarity_threshold: float
    has_api_key: bool = False

    @classmethod
    def from_provider(cls, provider: Any) -> "ProviderResponse":
        snapshot = ProviderConfig.model_validate(provider)
        return cls(
            id=provider.id,
            name=provider.name,
            provider_type=provider.provider_type,
            embedding_model=provider.embedding_model,
            dimensions=provider.dimensions,
            api_endpoint=provider.api_endpoint,
            enabled=provider.enabled,
            chunk_size=provider.chunk_size,
            chunk_overlap=provider.chunk_overlap,
            similarity_threshold=snapshot.similarity_threshold,
            has_api_key=bool(provider.api_key),
        )
