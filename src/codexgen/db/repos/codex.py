"""Codex repository for run-scoped codex instances."""

from typing import Any
from uuid import UUID

import sqlalchemy as sa

from codexgen.contracts.enums import CodexStatus
from codexgen.contracts.models import Codex, CodexSnapshot, ProviderRef
from codexgen.db.repos.base import BaseRepo
from codexgen.db.tables import codexes, runs


class CodexRepo(BaseRepo):
    """Repository for codexes table."""

    table = codexes

    async def create_codex(
        self,
        run_id: UUID,
        definition_id: UUID | None,
        name: str,
        snapshot: CodexSnapshot,
        display_order: int = 0,
        provider_override: ProviderRef | None = None,
    ) -> Codex:
        """Create a not-started codex with its frozen definition snapshot."""
        now = self.now()
        values = {
            "id": self.generate_uuid(),
            "run_id": run_id,
            "definition_id": definition_id,
            "name": name,
            "display_order": display_order,
            "status": CodexStatus.NOT_STARTED.value,
            "total_sections": len(snapshot.sections),
            "completed_sections": 0,
            "snapshot": snapshot.model_dump(mode="json"),
            "provider_override": (
                provider_override.model_dump(mode="json") if provider_override else None
            ),
            "cancel_requested": False,
            "created_at": now,
            "updated_at": now,
        }
        await self.session.execute(sa.insert(codexes).values(**values))
        return Codex.model_validate(values)

    async def get_by_id(self, entity_id: UUID) -> Codex | None:
        """Get codex by ID."""
        row = await self._fetch_one(sa.select(codexes).where(codexes.c.id == entity_id))
        return Codex.model_validate(row) if row else None

    async def get_for_definition(self, run_id: UUID, definition_id: UUID) -> Codex | None:
        row = await self._fetch_one(
            sa.select(codexes).where(
                codexes.c.run_id == run_id, codexes.c.definition_id == definition_id
            )
        )
        return Codex.model_validate(row) if row else None

    async def list_for_run(self, run_id: UUID) -> list[Codex]:
        """All codexes of a run in display order."""
        rows = await self._fetch_all(
            sa.select(codexes)
            .where(codexes.c.run_id == run_id)
            .order_by(codexes.c.display_order, codexes.c.name)
        )
        return [Codex.model_validate(r) for r in rows]

    async def transition(
        self,
        codex_id: UUID,
        current: CodexStatus,
        target: CodexStatus,
        error_message: str | None = None,
    ) -> bool:
        """Compare-and-set the codex status, stamping started/completed times."""
        now = self.now()
        values: dict[str, Any] = {"updated_at": now, "error_message": error_message}
        if target == CodexStatus.GENERATING:
            values["started_at"] = now
            values["completed_at"] = None
        elif target.is_terminal:
            values["completed_at"] = now
        return await self._compare_and_set(codex_id, current, target, **values)

    async def update_progress(self, codex_id: UUID, completed_sections: int) -> None:
        await self.session.execute(
            sa.update(codexes)
            .where(codexes.c.id == codex_id)
            .values(completed_sections=completed_sections, updated_at=self.now())
        )

    async def set_cancel_requested(self, codex_id: UUID, flag: bool) -> bool:
        result = await self.session.execute(
            sa.update(codexes)
            .where(codexes.c.id == codex_id)
            .values(cancel_requested=flag, updated_at=self.now())
        )
        return result.rowcount > 0

    async def is_cancel_requested(self, codex_id: UUID) -> bool:
        """True if the codex or its run has been asked to stop."""
        result = await self.session.execute(
            sa.select(codexes.c.cancel_requested, runs.c.cancel_requested)
            .select_from(codexes.join(runs, runs.c.id == codexes.c.run_id))
            .where(codexes.c.id == codex_id)
        )
        row = result.fetchone()
        return bool(row and (row[0] or row[1]))
