"""Provider resolution with three-tier fallback."""

import logging
from typing import Any, Protocol
from uuid import UUID

from codexgen.contracts.models import ProviderConfig
from codexgen.core.errors import ProviderUnavailableError
from codexgen.db.repos.provider import ProviderRepo
from codexgen.db.session import db_session
from codexgen.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    """Protocol for turning a (provider_id, model) request into a usable config."""

    async def resolve(
        self, requested_provider_id: UUID | None, requested_model: str | None
    ) -> ProviderConfig:
        ...


class ProviderResolver:
    """Resolves provider configs from the registry.

    Tiers:
    1. The requested provider, if active with an active key
    2. The highest-priority active provider that has an active key
    3. The default provider from settings

    Missing or inactive credentials never raise before tier 3.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    async def resolve(
        self, requested_provider_id: UUID | None, requested_model: str | None
    ) -> ProviderConfig:
        async with db_session() as session:
            repo = ProviderRepo(session)
            if requested_provider_id is not None:
                row = await repo.get_active_with_key(requested_provider_id)
                if row is not None:
                    model = requested_model or row["default_model"] or self._settings.default_model
                    return self._config(row, model)
                logger.warning(
                    f"Provider {requested_provider_id} is inactive or has no active key, "
                    "falling back to first available provider"
                )

            row = await repo.first_active_with_key()
            if row is not None:
                model = row["default_model"] or requested_model or self._settings.default_model
                if requested_provider_id is not None:
                    logger.info(f"Using fallback provider {row['name']} ({model})")
                return self._config(row, model)

        logger.warning("No active provider with a key in the registry, using default provider")
        return self.default_provider()

    def default_provider(self) -> ProviderConfig:
        """Tier-3 provider from settings."""
        s = self._settings
        if not s.default_provider_api_key:
            raise ProviderUnavailableError(
                "No active AI provider configured and DEFAULT_PROVIDER_API_KEY is not set"
            )
        return ProviderConfig(
            provider_code=s.default_provider_code,
            name=s.default_provider_name,
            base_url=s.default_provider_base_url,
            api_key=s.default_provider_api_key,
            model=s.default_model,
        )

    @staticmethod
    def _config(row: dict[str, Any], model: str) -> ProviderConfig:
        return ProviderConfig(
            provider_code=row["provider_code"],
            name=row["name"],
            base_url=row["base_url"],
            api_key=row["api_key"],
            model=model,
        )
