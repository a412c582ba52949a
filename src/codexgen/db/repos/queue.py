"""Generation queue repository."""

from typing import Any
from uuid import UUID

import sqlalchemy as sa

from codexgen.contracts.enums import QueueStatus
from codexgen.contracts.models import QueueItem
from codexgen.db.repos.base import BaseRepo
from codexgen.db.tables import generation_queue


class QueueRepo(BaseRepo):
    """Repository for generation_queue table."""

    table = generation_queue

    async def create_items(
        self,
        pairs: list[tuple[str, UUID]],
        batch_id: UUID,
        provider_id: UUID | None = None,
        model: str | None = None,
        triggered_by: str | None = None,
    ) -> list[QueueItem]:
        """Insert one pending item per (subject_id, definition_id) pair."""
        now = self.now()
        rows = [
            {
                "id": self.generate_uuid(),
                "subject_id": subject_id,
                "definition_id": definition_id,
                "status": QueueStatus.PENDING.value,
                "provider_id": provider_id,
                "model": model,
                "batch_id": batch_id,
                "triggered_by": triggered_by,
                "created_at": now,
            }
            for subject_id, definition_id in pairs
        ]
        if rows:
            await self.session.execute(sa.insert(generation_queue), rows)
        return [QueueItem.model_validate(r) for r in rows]

    async def get_by_id(self, entity_id: UUID) -> QueueItem | None:
        """Get queue item by ID."""
        row = await self._fetch_one(
            sa.select(generation_queue).where(generation_queue.c.id == entity_id)
        )
        return QueueItem.model_validate(row) if row else None

    async def get_many(self, ids: list[UUID]) -> list[QueueItem]:
        if not ids:
            return []
        rows = await self._fetch_all(
            sa.select(generation_queue).where(generation_queue.c.id.in_(ids))
        )
        return [QueueItem.model_validate(r) for r in rows]

    async def list_by_status(self, status: QueueStatus, limit: int | None = None) -> list[QueueItem]:
        """Items in a status, oldest first."""
        stmt = (
            sa.select(generation_queue)
            .where(generation_queue.c.status == status.value)
            .order_by(generation_queue.c.created_at)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = await self._fetch_all(stmt)
        return [QueueItem.model_validate(r) for r in rows]

    async def transition(
        self,
        item_id: UUID,
        current: QueueStatus,
        target: QueueStatus,
        **fields: Any,
    ) -> bool:
        """Compare-and-set the queue item status, stamping started/completed times."""
        now = self.now()
        if target == QueueStatus.PROCESSING:
            fields.setdefault("started_at", now)
        elif target.is_terminal:
            fields.setdefault("completed_at", now)
        return await self._compare_and_set(item_id, current, target, **fields)
