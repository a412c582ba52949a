"""Usage record repository (append-only)."""

from uuid import UUID

import sqlalchemy as sa

from codexgen.contracts.models import UsageRecord
from codexgen.db.repos.base import BaseRepo
from codexgen.db.tables import usage_records


class UsageRepo(BaseRepo):
    """Repository for usage_records table."""

    table = usage_records

    async def create(self, record: UsageRecord) -> UUID:
        """Append one usage record."""
        values = record.model_dump()
        values["status"] = record.status.value
        values["execution_mode"] = record.execution_mode.value if record.execution_mode else None
        await self.session.execute(sa.insert(usage_records).values(**values))
        return record.id

    async def get_by_id(self, entity_id: UUID) -> UsageRecord | None:
        row = await self._fetch_one(sa.select(usage_records).where(usage_records.c.id == entity_id))
        return UsageRecord.model_validate(row) if row else None

    async def list_for_run(self, run_id: UUID) -> list[UsageRecord]:
        rows = await self._fetch_all(
            sa.select(usage_records)
            .where(usage_records.c.run_id == run_id)
            .order_by(usage_records.c.created_at)
        )
        return [UsageRecord.model_validate(r) for r in rows]

    async def total_cost(self, run_id: UUID) -> float:
        result = await self.session.execute(
            sa.select(sa.func.coalesce(sa.func.sum(usage_records.c.cost), 0.0)).where(
                usage_records.c.run_id == run_id
            )
        )
        return round(float(result.scalar_one()), 8)
