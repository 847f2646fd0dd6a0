"""Embedding provider administration endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_engine.config import get_settings
from knowledge_engine.dependencies import get_session
from knowledge_engine.models.provider import ProviderCreate, ProviderResponse, ProviderUpdate
from knowledge_engine.services.provider_service import ProviderService
from knowledge_engine.tasks.embedding import reindex_embeddings, schedule_regeneration
from knowledge_engine.utils.errors import ValidationError
from knowledge_engine.utils.logging import get_logger

logger = get_logger("providers_api")

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("", response_model=List[ProviderResponse])
async def list_providers(session: AsyncSession = Depends(get_session)):
    """List all embedding providers."""
    providers = await ProviderService(session).list_providers()
    return [ProviderResponse.from_provider(provider) for provider in providers]


@router.post("", response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
async def create_provider(body: ProviderCreate, session: AsyncSession = Depends(get_session)):
    """
    Create an embedding provider.

    Dimensions are taken from the model catalog when the model is known.
    The first provider created is enabled automatically.
    """
    provider = await ProviderService(session).create_provider(**body.model_dump())
    return ProviderResponse.from_provider(provider)


@router.get("/{provider_id}", response_model=ProviderResponse)
async def get_provider(provider_id: str, session: AsyncSession = Depends(get_session)):
    provider = await ProviderService(session).get_provider(provider_id)
    return ProviderResponse.from_provider(provider)


@router.patch("/{provider_id}", response_model=ProviderResponse)
async def update_provider(
    provider_id: str,
    body: ProviderUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Update mutable provider fields. A blank API key keeps the stored key."""
    provider = await ProviderService(session).update_provider(provider_id, **body.model_dump(exclude_unset=True))
    return ProviderResponse.from_provider(provider)


@router.delete("/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_provider(provider_id: str, session: AsyncSession = Depends(get_session)):
    await ProviderService(session).delete_provider(provider_id)


@router.post("/{provider_id}/activate")
async def activate_provider(provider_id: str, session: AsyncSession = Depends(get_session)):
    """
    Make a provider the only enabled provider.

    When the enabled provider changes, chunks from other providers are
    dropped and every document is queued for re-embedding in the background.
    """
    result = await ProviderService(session).activate(provider_id)
    scheduled = schedule_regeneration(result)
    return {**result.model_dump(), "regeneration_scheduled": scheduled}


@router.post("/{provider_id}/reindex", status_code=status.HTTP_202_ACCEPTED)
async def reindex_provider(provider_id: str, session: AsyncSession = Depends(get_session)):
    """Drop every chunk and re-embed all documents with the enabled provider."""
    provider = await ProviderService(session).get_provider(provider_id)
    if not provider.enabled:
        raise ValidationError(
            "Only the active embedding provider can be reindexed",
            errors={"enabled": "provider is not active"},
        )
    reindex_embeddings.apply_async(args=[provider_id], queue=get_settings().celery.embeddings_queue)
    logger.info(f"Scheduled full reindex for provider {provider_id}")
    return {"provider_id": provider_id, "status": "queued"}
