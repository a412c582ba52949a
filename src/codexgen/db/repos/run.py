"""Run repository."""

from typing import Any
from uuid import UUID

import sqlalchemy as sa

from codexgen.contracts.enums import RunStatus
from codexgen.contracts.models import Run
from codexgen.db.repos.base import BaseRepo
from codexgen.db.tables import runs


class RunRepo(BaseRepo):
    """Repository for runs table."""

    table = runs

    async def create_run(
        self,
        subject_id: str,
        answers: dict[str, Any] | None = None,
        source_document: str | None = None,
    ) -> Run:
        """Create a new pending run."""
        now = self.now()
        values = {
            "id": self.generate_uuid(),
            "subject_id": subject_id,
            "answers": answers or {},
            "source_document": source_document,
            "status": RunStatus.PENDING.value,
            "cancel_requested": False,
            "created_at": now,
            "updated_at": now,
        }
        await self.session.execute(sa.insert(runs).values(**values))
        return Run.model_validate(values)

    async def get_by_id(self, entity_id: UUID) -> Run | None:
        """Get run by ID."""
        row = await self._fetch_one(sa.select(runs).where(runs.c.id == entity_id))
        return Run.model_validate(row) if row else None

    async def latest_for_subject(self, subject_id: str) -> Run | None:
        """Most recently created run for a subject."""
        row = await self._fetch_one(
            sa.select(runs)
            .where(runs.c.subject_id == subject_id)
            .order_by(runs.c.created_at.desc())
            .limit(1)
        )
        return Run.model_validate(row) if row else None

    async def transition(
        self,
        run_id: UUID,
        current: RunStatus,
        target: RunStatus,
        error_message: str | None = None,
    ) -> bool:
        """Compare-and-set the run status, stamping started/completed times."""
        now = self.now()
        values: dict[str, Any] = {"updated_at": now, "error_message": error_message}
        if target == RunStatus.GENERATING:
            values["started_at"] = now
            values["completed_at"] = None
        elif target == RunStatus.COMPLETED:
            values["completed_at"] = now
        return await self._compare_and_set(run_id, current, target, **values)

    async def set_source_document(self, run_id: UUID, source_document: str) -> bool:
        result = await self.session.execute(
            sa.update(runs)
            .where(runs.c.id == run_id)
            .values(source_document=source_document, updated_at=self.now())
        )
        return result.rowcount > 0

    async def set_cancel_requested(self, run_id: UUID, flag: bool) -> bool:
        result = await self.session.execute(
            sa.update(runs)
            .where(runs.c.id == run_id)
            .values(cancel_requested=flag, updated_at=self.now())
        )
        return result.rowcount > 0

    async def is_cancel_requested(self, run_id: UUID) -> bool:
        result = await self.session.execute(
            sa.select(runs.c.cancel_requested).where(runs.c.id == run_id)
        )
        return bool(result.scalar_one_or_none())
