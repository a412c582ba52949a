"""Base repository shared by all table repositories."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from codexgen.core.state import ensure_transition


class BaseRepo(ABC):
    """Base repository class.

    Invariants:
    - Repositories never commit; the caller owning the session does
    - Status columns are changed with compare-and-set updates
      (``WHERE status = :expected``) so concurrent writers cannot both win
    - UUID generation: app-side uuid4() for new entities
    """

    table: sa.Table

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def now() -> datetime:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc)

    @staticmethod
    def generate_uuid() -> UUID:
        """Generate a new UUID4 for an entity id."""
        return uuid4()

    async def _fetch_one(self, stmt: sa.Select) -> dict[str, Any] | None:
        result = await self.session.execute(stmt)
        row = result.mappings().fetchone()
        return dict(row) if row else None

    async def _fetch_all(self, stmt: sa.Select) -> list[dict[str, Any]]:
        result = await self.session.execute(stmt)
        return [dict(row) for row in result.mappings().fetchall()]

    @abstractmethod
    async def get_by_id(self, entity_id: UUID) -> Any:
        """Get entity by ID, or None if not found."""
        raise NotImplementedError

    async def delete(self, entity_id: UUID) -> bool:
        """Delete entity. Returns True if a row was removed."""
        result = await self.session.execute(
            sa.delete(self.table).where(self.table.c.id == entity_id)
        )
        return result.rowcount > 0

    async def _compare_and_set(
        self,
        entity_id: UUID,
        current: Enum,
        target: Enum,
        **values: Any,
    ) -> bool:
        """Move status current -> target only if the row is still in current.

        Raises IllegalTransitionError if the table forbids the move; returns
        False if another writer changed the row first.
        """
        ensure_transition(current, target)
        result = await self.session.execute(
            sa.update(self.table)
            .where(self.table.c.id == entity_id, self.table.c.status == current.value)
            .values(status=target.value, **values)
        )
        return result.rowcount > 0
