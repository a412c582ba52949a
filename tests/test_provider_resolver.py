"""Tests for three-tier provider resolution."""

import asyncio
from uuid import uuid4

import pytest

from codexgen.core.errors import ProviderUnavailableError
from codexgen.db.repos import ProviderRepo
from codexgen.db.session import db_session
from codexgen.providers.resolver import ProviderResolver
from codexgen.settings import Settings


async def add_provider(name: str, code: str, key: str | None = "k", **kwargs):
    async with db_session() as session:
        repo = ProviderRepo(session)
        provider_id = await repo.create_provider(
            name=name, provider_code=code, base_url=f"https://{code}.example.com/v1", **kwargs
        )
        if key is not None:
            await repo.add_key(provider_id, key)
        await session.commit()
    # created_at ordering tie-break
    await asyncio.sleep(0.01)
    return provider_id


@pytest.fixture
def settings() -> Settings:
    return Settings(
        default_provider_code="openai",
        default_provider_api_key="env-key",
        default_model="gpt-4o-mini",
    )


class TestTierOne:
    """The requested provider wins when it is active with an active key."""

    async def test_requested_provider_and_model(self, database, settings) -> None:
        requested = await add_provider("Anthropic", "anthropic", key="ak", priority=0)
        await add_provider("OpenAI", "openai", priority=10)

        config = await ProviderResolver(settings).resolve(requested, "claude-3-5-haiku-20241022")

        assert config.provider_code == "anthropic"
        assert config.api_key == "ak"
        assert config.model == "claude-3-5-haiku-20241022"

    async def test_requested_provider_default_model(self, database, settings) -> None:
        requested = await add_provider("Gemini", "gemini", default_model="gemini-1.5-pro")
        config = await ProviderResolver(settings).resolve(requested, None)
        assert config.model == "gemini-1.5-pro"


class TestTierTwo:
    """Fallback to the highest-priority active provider with a key."""

    async def test_requested_without_key_falls_back(self, database, settings) -> None:
        keyless = await add_provider("Keyless", "deepseek", key=None, priority=100)
        await add_provider("Low", "perplexity", priority=1)
        await add_provider("High", "anthropic", priority=5, default_model="claude-sonnet-4-20250514")

        config = await ProviderResolver(settings).resolve(keyless, None)

        assert config.provider_code == "anthropic"
        assert config.model == "claude-sonnet-4-20250514"

    async def test_inactive_requested_falls_back(self, database, settings) -> None:
        inactive = await add_provider("Inactive", "openai", is_active=False)
        await add_provider("Active", "deepseek", default_model="deepseek-chat")
        config = await ProviderResolver(settings).resolve(inactive, "gpt-4o")
        assert config.provider_code == "deepseek"

    async def test_unknown_id_falls_back(self, database, settings) -> None:
        await add_provider("Only", "openrouter")
        config = await ProviderResolver(settings).resolve(uuid4(), None)
        assert config.provider_code == "openrouter"

    async def test_equal_priority_oldest_wins(self, database, settings) -> None:
        await add_provider("First", "perplexity", priority=3)
        await add_provider("Second", "deepseek", priority=3)
        config = await ProviderResolver(settings).resolve(None, None)
        assert config.provider_code == "perplexity"


class TestTierThree:
    async def test_settings_default(self, database, settings) -> None:
        """Empty registry resolves to the configured default provider."""
        config = await ProviderResolver(settings).resolve(None, None)
        assert config.provider_code == "openai"
        assert config.api_key == "env-key"
        assert config.model == "gpt-4o-mini"

    async def test_no_default_key_raises(self, database) -> None:
        resolver = ProviderResolver(Settings(default_provider_api_key=None))
        with pytest.raises(ProviderUnavailableError):
            await resolver.resolve(None, None)

    async def test_keyless_registry_falls_through(self, database, settings) -> None:
        await add_provider("Keyless", "anthropic", key=None, priority=10)
        config = await ProviderResolver(settings).resolve(None, None)
        assert config.api_key == "env-key"
