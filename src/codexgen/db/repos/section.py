"""Section repository."""

from datetime import datetime
from typing import Any
from uuid import UUID

import sqlalchemy as sa

from codexgen.contracts.enums import SectionStatus
from codexgen.contracts.models import Section, SectionTemplate
from codexgen.db.repos.base import BaseRepo
from codexgen.db.tables import codex_sections


class SectionRepo(BaseRepo):
    """Repository for codex_sections table."""

    table = codex_sections

    async def create_sections(
        self, codex_id: UUID, templates: list[SectionTemplate]
    ) -> list[Section]:
        """Insert one pending row per template.

        Raises IntegrityError if any (codex_id, section_index) already exists.
        """
        now = self.now()
        rows = [
            {
                "id": self.generate_uuid(),
                "codex_id": codex_id,
                "section_index": t.index,
                "name": t.name,
                "status": SectionStatus.PENDING.value,
                "retries": 0,
                "regeneration_count": 0,
                "created_at": now,
                "updated_at": now,
            }
            for t in templates
        ]
        if rows:
            await self.session.execute(sa.insert(codex_sections), rows)
        return [Section.model_validate(r) for r in rows]

    async def get_by_id(self, entity_id: UUID) -> Section | None:
        """Get section by ID."""
        row = await self._fetch_one(
            sa.select(codex_sections).where(codex_sections.c.id == entity_id)
        )
        return Section.model_validate(row) if row else None

    async def list_for_codex(self, codex_id: UUID) -> list[Section]:
        """All sections of a codex ordered by index."""
        rows = await self._fetch_all(
            sa.select(codex_sections)
            .where(codex_sections.c.codex_id == codex_id)
            .order_by(codex_sections.c.section_index)
        )
        return [Section.model_validate(r) for r in rows]

    async def completed_for_codexes(self, codex_ids: list[UUID]) -> list[Section]:
        """Completed sections of several codexes ordered by codex then index."""
        if not codex_ids:
            return []
        rows = await self._fetch_all(
            sa.select(codex_sections)
            .where(
                codex_sections.c.codex_id.in_(codex_ids),
                codex_sections.c.status == SectionStatus.COMPLETED.value,
            )
            .order_by(codex_sections.c.codex_id, codex_sections.c.section_index)
        )
        return [Section.model_validate(r) for r in rows]

    async def transition(
        self,
        section_id: UUID,
        current: SectionStatus,
        target: SectionStatus,
        **fields: Any,
    ) -> bool:
        """Compare-and-set the section status with extra column updates."""
        fields.setdefault("updated_at", self.now())
        if target == SectionStatus.COMPLETED:
            fields.setdefault("error_message", None)
        return await self._compare_and_set(section_id, current, target, **fields)

    async def count_by_status(self, codex_id: UUID) -> dict[SectionStatus, int]:
        result = await self.session.execute(
            sa.select(codex_sections.c.status, sa.func.count())
            .where(codex_sections.c.codex_id == codex_id)
            .group_by(codex_sections.c.status)
        )
        return {SectionStatus(status): count for status, count in result.fetchall()}

    async def reset_errors(self, codex_id: UUID) -> int:
        """Move every errored section of a codex back to pending for a retry."""
        result = await self.session.execute(
            sa.update(codex_sections)
            .where(
                codex_sections.c.codex_id == codex_id,
                codex_sections.c.status == SectionStatus.ERROR.value,
            )
            .values(
                status=SectionStatus.PENDING.value,
                error_message=None,
                retries=codex_sections.c.retries + 1,
                updated_at=self.now(),
            )
        )
        return result.rowcount

    async def reset_stale(self, codex_id: UUID, older_than: datetime) -> int:
        """Return generating sections untouched since ``older_than`` to pending.

        A section left generating by a worker that died never finishes on
        its own; its retry counter is bumped like an errored section.
        """
        result = await self.session.execute(
            sa.update(codex_sections)
            .where(
                codex_sections.c.codex_id == codex_id,
                codex_sections.c.status == SectionStatus.GENERATING.value,
                codex_sections.c.updated_at < older_than,
            )
            .values(
                status=SectionStatus.PENDING.value,
                retries=codex_sections.c.retries + 1,
                updated_at=self.now(),
            )
        )
        return result.rowcount
