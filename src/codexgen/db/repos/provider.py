"""AI provider registry repository: providers and their API keys."""

from typing import Any
from uuid import UUID

import sqlalchemy as sa

from codexgen.db.repos.base import BaseRepo
from codexgen.db.tables import ai_provider_keys, ai_providers


class ProviderRepo(BaseRepo):
    """Repository for ai_providers and ai_provider_keys tables."""

    table = ai_providers

    async def create_provider(
        self,
        name: str,
        provider_code: str,
        base_url: str,
        default_model: str | None = None,
        priority: int = 0,
        is_active: bool = True,
    ) -> UUID:
        """Register a provider."""
        provider_id = self.generate_uuid()
        await self.session.execute(
            sa.insert(ai_providers).values(
                id=provider_id,
                name=name,
                provider_code=provider_code,
                base_url=base_url,
                default_model=default_model,
                priority=priority,
                is_active=is_active,
                created_at=self.now(),
            )
        )
        return provider_id

    async def add_key(self, provider_id: UUID, api_key: str, is_active: bool = True) -> UUID:
        key_id = self.generate_uuid()
        await self.session.execute(
            sa.insert(ai_provider_keys).values(
                id=key_id,
                provider_id=provider_id,
                api_key=api_key,
                is_active=is_active,
                created_at=self.now(),
            )
        )
        return key_id

    async def get_by_id(self, entity_id: UUID) -> dict[str, Any] | None:
        """Get provider row by ID."""
        return await self._fetch_one(sa.select(ai_providers).where(ai_providers.c.id == entity_id))

    def _active_with_key(self) -> sa.Select:
        return (
            sa.select(
                ai_providers.c.id,
                ai_providers.c.name,
                ai_providers.c.provider_code,
                ai_providers.c.base_url,
                ai_providers.c.default_model,
                ai_provider_keys.c.api_key,
            )
            .select_from(
                ai_providers.join(ai_provider_keys, ai_provider_keys.c.provider_id == ai_providers.c.id)
            )
            .where(
                ai_providers.c.is_active.is_(True),
                ai_provider_keys.c.is_active.is_(True),
            )
        )

    async def get_active_with_key(self, provider_id: UUID) -> dict[str, Any] | None:
        """Active provider joined with one active key, or None."""
        return await self._fetch_one(
            self._active_with_key()
            .where(ai_providers.c.id == provider_id)
            .order_by(ai_provider_keys.c.created_at.desc())
            .limit(1)
        )

    async def first_active_with_key(self) -> dict[str, Any] | None:
        """Highest-priority active provider that has an active key."""
        return await self._fetch_one(
            self._active_with_key()
            .order_by(ai_providers.c.priority.desc(), ai_providers.c.created_at)
            .limit(1)
        )
