"""Tests for embedding provider administration."""

import pytest

from knowledge_engine.models.provider import ProviderConfig
from knowledge_engine.services.provider_service import ProviderService
from knowledge_engine.utils.errors import NotFoundError, ValidationError


class TestCreateProvider:
    async def test_first_provider_is_enabled(self, session):
        service = ProviderService(session)

        first = await service.create_provider(
            name="OpenAI", provider_type="openai", embedding_model="text-embedding-3-small", api_key="sk-1"
        )
        second = await service.create_provider(
            name="Cohere", provider_type="cohere", embedding_model="embed-english-v3.0", api_key="co-1"
        )

        assert first.enabled is True
        assert second.enabled is False

    async def test_catalog_dimensions_win(self, session):
        provider = await ProviderService(session).create_provider(
            name="OpenAI", provider_type="openai", embedding_model="text-embedding-3-large", dimensions=12
        )

        assert provider.dimensions == 3072

    async def test_custom_model_needs_dimensions(self, session):
        service = ProviderService(session)

        with pytest.raises(ValidationError) as exc_info:
            await service.create_provider(name="Custom", provider_type="ollama", embedding_model="my-model")
        assert "dimensions" in exc_info.value.details["validation_errors"]

        provider = await service.create_provider(
            name="Custom", provider_type="ollama", embedding_model="my-model", dimensions=256
        )
        assert provider.dimensions == 256

    async def test_defaults(self, session):
        provider = await ProviderService(session).create_provider(
            name="Local", provider_type="ollama", embedding_model="nomic-embed-text"
        )

        assert provider.api_endpoint == "http://localhost:11434"
        assert provider.chunk_size == 512
        assert provider.chunk_overlap == 10
        assert provider.settings == {}
        assert ProviderConfig.model_validate(provider).similarity_threshold == 0.42

    async def test_threshold_is_stored_in_settings(self, session):
        provider = await ProviderService(session).create_provider(
            name="OpenAI",
            provider_type="openai",
            embedding_model="text-embedding-3-small",
            similarity_threshold=0.45,
        )

        assert provider.settings == {"similarity_threshold": 0.45}

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"name": " "}, "name"),
            ({"provider_type": "watson"}, "provider_type"),
            ({"provider_type": "azure_openai", "embedding_model": "text-embedding-3-small"}, "api_endpoint"),
            ({"chunk_size": 0}, "chunk_size"),
            ({"chunk_overlap": 60}, "chunk_overlap"),
        ],
    )
    async def test_invalid_configuration(self, session, kwargs, field):
        values = {"name": "OpenAI", "provider_type": "openai", "embedding_model": "text-embedding-3-small"}
        values.update(kwargs)

        with pytest.raises(ValidationError) as exc_info:
            await ProviderService(session).create_provider(**values)

        assert field in exc_info.value.details["validation_errors"]

    async def test_duplicate_name(self, session, factory):
        await factory.provider(name="Primary")

        with pytest.raises(ValidationError) as exc_info:
            await ProviderService(session).create_provider(
                name="Primary", provider_type="openai", embedding_model="text-embedding-3-small"
            )

        assert exc_info.value.details["validation_errors"]["name"] == "has already been taken"


class TestUpdateProvider:
    async def test_updates_mutable_fields(self, session, factory):
        provider = await factory.provider(api_key="old-key")

        updated = await ProviderService(session).update_provider(
            provider.id, name="Renamed", chunk_size=256, chunk_overlap=20, similarity_threshold=0.7
        )

        assert updated.name == "Renamed"
        assert updated.chunk_size == 256
        assert updated.chunk_overlap == 20
        assert updated.settings["similarity_threshold"] == 0.7
        assert updated.api_key == "old-key"

    async def test_blank_api_key_keeps_existing(self, session, factory):
        provider = await factory.provider(api_key="secret")

        updated = await ProviderService(session).update_provider(provider.id, api_key="")

        assert updated.api_key == "secret"

    async def test_new_api_key_replaces_existing(self, session, factory):
        provider = await factory.provider(api_key="secret")

        updated = await ProviderService(session).update_provider(provider.id, api_key="rotated")

        assert updated.api_key == "rotated"

    @pytest.mark.parametrize(
        "field,value",
        [("provider_type", "openai"), ("embedding_model", "other-model"), ("dimensions", 8)],
    )
    async def test_immutable_fields(self, session, factory, field, value):
        provider = await factory.provider()

        with pytest.raises(ValidationError) as exc_info:
            await ProviderService(session).update_provider(provider.id, **{field: value})

        assert field in exc_info.value.details["validation_errors"]

    async def test_unchanged_immutable_field_is_accepted(self, session, factory):
        provider = await factory.provider()

        updated = await ProviderService(session).update_provider(provider.id, dimensions=4, name="Same dims")

        assert updated.name == "Same dims"

    async def test_rename_to_taken_name(self, session, factory):
        await factory.provider(name="First")
        second = await factory.provider(name="Second", enabled=False)

        with pytest.raises(ValidationError):
            await ProviderService(session).update_provider(second.id, name="First")

    async def test_unknown_provider(self, session):
        with pytest.raises(NotFoundError):
            await ProviderService(session).update_provider("missing", name="x")


class TestDeleteProvider:
    async def test_enabled_provider_cannot_be_deleted(self, session, factory):
        provider = await factory.provider(enabled=True)

        with pytest.raises(ValidationError):
            await ProviderService(session).delete_provider(provider.id)

    async def test_disabled_provider_is_deleted(self, session, factory):
        await factory.provider(name="Active")
        spare = await factory.provider(name="Spare", enabled=False)
        service = ProviderService(session)

        await service.delete_provider(spare.id)

        with pytest.raises(NotFoundError):
            await service.get_provider(spare.id)


class TestActivate:
    async def test_switches_the_enabled_provider(self, session, factory):
        old = await factory.provider(name="Old")
        new = await factory.provider(name="New", enabled=False)

        result = await ProviderService(session).activate(new.id)

        await session.refresh(old)
        await session.refresh(new)
        assert result.changed is True
        assert result.previous_provider_id == old.id
        assert new.enabled is True
        assert old.enabled is False

    async def test_activating_enabled_provider_is_unchanged(self, session, factory):
        current = await factory.provider(name="Current")

        result = await ProviderService(session).activate(current.id)

        assert result.changed is False
        assert result.previous_provider_id == current.id

    async def test_first_activation(self, session, factory):
        provider = await factory.provider(enabled=False)

        result = await ProviderService(session).activate(provider.id)

        assert result.changed is True
        assert result.previous_provider_id is None

    async def test_unknown_provider(self, session):
        with pytest.raises(NotFoundError):
            await ProviderService(session).activate("missing")
