"""Embedding provider administration."""

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.config import get_settings
from knowledge_engine.database.models import EmbeddingProvider
from knowledge_engine.models.provider import (
    DEFAULT_ENDPOINTS,
    MAX_DIMENSIONS,
    PROVIDER_TYPES,
    model_dimensions,
    requires_api_endpoint,
)
from knowledge_engine.models.results import ActivationResult
from knowledge_engine.repositories.provider_repository import ProviderRepository
from knowledge_engine.utils.errors import NotFoundError, ValidationError
from knowledge_engine.utils.logging import get_logger

logger = get_logger("provider_service")

# Fields fixed at creation; vectors from a different model are not comparable
IMMUTABLE_FIELDS = ("provider_type", "embedding_model", "dimensions")
UPDATABLE_FIELDS = ("name", "api_key", "api_endpoint", "chunk_size", "chunk_overlap")


class ProviderService:
    """Create, update, delete and activate embedding providers."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = ProviderRepository(session)

    async def list_providers(self) -> List[EmbeddingProvider]:
        return await self.repository.list_all()

    async def get_provider(self, provider_id: str) -> EmbeddingProvider:
        provider = await self.repository.get_by_id(provider_id)
        if provider is None:
            raise NotFoundError("Embedding provider", provider_id)
        return provider

    async def create_provider(
        self,
        name: str,
        provider_type: str,
        embedding_model: str,
        dimensions: Optional[int] = None,
        api_key: Optional[str] = None,
        api_endpoint: Optional[str] = None,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> EmbeddingProvider:
        """
        Create a provider, applying catalog defaults.

        Dimensions come from the model catalog when the model is known. The
        default endpoint is filled in for endpoint-based backends. The first
        provider ever created is enabled.

        Raises:
            ValidationError: Invalid or duplicate configuration
        """
        errors: Dict[str, str] = {}
        name = (name or "").strip()
        if not name:
            errors["name"] = "is required"
        if provider_type not in PROVIDER_TYPES:
            errors["provider_type"] = f"must be one of {', '.join(PROVIDER_TYPES)}"
        if not embedding_model:
            errors["embedding_model"] = "is required"

        dimensions = model_dimensions(provider_type, embedding_model) or dimensions
        if not dimensions or not 0 < dimensions <= MAX_DIMENSIONS:
            errors["dimensions"] = f"must be between 1 and {MAX_DIMENSIONS}"

        api_endpoint = api_endpoint or DEFAULT_ENDPOINTS.get(provider_type)
        if requires_api_endpoint(provider_type) and not api_endpoint:
            errors["api_endpoint"] = f"is required for {provider_type}"

        chunking = get_settings().chunking
        chunk_size = chunk_size if chunk_size is not None else chunking.size
        chunk_overlap = chunk_overlap if chunk_overlap is not None else chunking.overlap
        self._validate_chunking(chunk_size, chunk_overlap, errors)

        if name and await self.repository.get_by_name(name) is not None:
            errors["name"] = "has already been taken"
        if errors:
            raise ValidationError("Invalid embedding provider", errors=errors)

        provider_settings = dict(settings or {})
        if similarity_threshold is not None:
            provider_settings["similarity_threshold"] = float(similarity_threshold)

        is_first = await self.repository.count() == 0
        provider = await self.repository.create(
            name=name,
            provider_type=provider_type,
            embedding_model=embedding_model,
            dimensions=dimensions,
            api_key=api_key or None,
            api_endpoint=api_endpoint,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            settings=provider_settings,
            enabled=is_first,
        )
        logger.info(
            f"Created embedding provider {provider.id}: type={provider_type}, model={embedding_model}, "
            f"dimensions={dimensions}, enabled={is_first}"
        )
        return provider

    async def update_provider(self, provider_id: str, **changes: Any) -> EmbeddingProvider:
        """
        Update mutable provider fields.

        A blank ``api_key`` keeps the stored key. ``similarity_threshold`` is
        stored in the provider's settings.

        Raises:
            NotFoundError: Unknown provider
            ValidationError: Attempt to change an immutable field or invalid value
        """
        provider = await self.get_provider(provider_id)

        immutable = {
            field: "cannot be changed; create a new provider instead"
            for field in IMMUTABLE_FIELDS
            if field in changes and changes[field] != getattr(provider, field)
        }
        if immutable:
            raise ValidationError("Immutable provider fields", errors=immutable)

        updates = {field: changes[field] for field in UPDATABLE_FIELDS if field in changes}
        if not updates.get("api_key"):
            updates.pop("api_key", None)

        errors: Dict[str, str] = {}
        if "name" in updates:
            updates["name"] = (updates["name"] or "").strip()
            if not updates["name"]:
                errors["name"] = "is required"
            elif updates["name"] != provider.name and await self.repository.get_by_name(updates["name"]):
                errors["name"] = "has already been taken"
        self._validate_chunking(
            updates.get("chunk_size", provider.chunk_size),
            updates.get("chunk_overlap", provider.chunk_overlap),
            errors,
        )
        if requires_api_endpoint(provider.provider_type) and "api_endpoint" in updates and not updates["api_endpoint"]:
            errors["api_endpoint"] = f"is required for {provider.provider_type}"
        if errors:
            raise ValidationError("Invalid embedding provider", errors=errors)

        if "similarity_threshold" in changes or "settings" in changes:
            provider_settings = dict(provider.settings or {})
            provider_settings.update(changes.get("settings") or {})
            if changes.get("similarity_threshold") is not None:
                provider_settings["similarity_threshold"] = float(changes["similarity_threshold"])
            updates["settings"] = provider_settings

        updated = await self.repository.update(provider_id, **updates)
        logger.info(f"Updated embedding provider {provider_id}: fields={sorted(updates)}")
        return updated

    async def delete_provider(self, provider_id: str) -> None:
        """
        Delete a provider that is not enabled.

        Raises:
            NotFoundError: Unknown provider
            ValidationError: The provider is enabled
        """
        provider = await self.get_provider(provider_id)
        if provider.enabled:
            raise ValidationError(
                "Cannot delete an active embedding provider. Activate another provider first.",
                errors={"enabled": "provider is active"},
            )
        await self.repository.delete(provider_id)
        logger.info(f"Deleted embedding provider {provider_id}")

    async def activate(self, provider_id: str) -> ActivationResult:
        """
        Make a provider the only enabled provider and commit.

        The caller enqueues chunk regeneration when ``result.changed``; the
        commit happens first so the regeneration job sees the new provider.

        Raises:
            NotFoundError: Unknown provider
        """
        await self.get_provider(provider_id)
        try:
            previous_id = await self.repository.activate(provider_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        result = ActivationResult(provider_id=provider_id, previous_provider_id=previous_id)
        if result.changed:
            logger.info(f"Activated embedding provider {provider_id} (previous: {previous_id})")
        else:
            logger.info(f"Embedding provider {provider_id} already active")
        return result

    @staticmethod
    def _validate_chunking(chunk_size: Any, chunk_overlap: Any, errors: Dict[str, str]) -> None:
        if not isinstance(chunk_size, int) or chunk_size <= 0:
            errors["chunk_size"] = "must be a positive integer"
        if not isinstance(chunk_overlap, int) or not 0 <= chunk_overlap <= 50:
            errors["chunk_overlap"] = "must be between 0 and 50 percent"
