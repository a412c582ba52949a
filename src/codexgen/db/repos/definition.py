"""Codex definition repository: definitions, section templates, prerequisite edges."""

from collections import defaultdict
from uuid import UUID

import sqlalchemy as sa

from codexgen.contracts.models import (
    CodexDefinition,
    ExecutionConfig,
    SectionTemplate,
    SingleExecution,
)
from codexgen.core.errors import CircularDependencyError, DefinitionNotFoundError
from codexgen.db.repos.base import BaseRepo
from codexgen.db.tables import (
    codex_definition_prerequisites,
    codex_definitions,
    codex_section_templates,
)
from codexgen.orchestration.dependencies import would_create_cycle

prereqs = codex_definition_prerequisites
templates = codex_section_templates


class DefinitionRepo(BaseRepo):
    """Repository for codex_definitions and its child tables."""

    table = codex_definitions

    async def create_definition(
        self,
        name: str,
        sections: list[SectionTemplate],
        system_prompt: str = "",
        display_order: int = 0,
        is_active: bool = True,
        depends_on_source: bool = False,
        word_count_min: int | None = None,
        word_count_max: int | None = None,
        execution: ExecutionConfig | None = None,
    ) -> CodexDefinition:
        """Create a definition with its section templates."""
        now = self.now()
        definition_id = self.generate_uuid()
        execution = execution or SingleExecution()
        await self.session.execute(
            sa.insert(codex_definitions).values(
                id=definition_id,
                name=name,
                system_prompt=system_prompt,
                display_order=display_order,
                is_active=is_active,
                depends_on_source=depends_on_source,
                word_count_min=word_count_min,
                word_count_max=word_count_max,
                execution=execution.model_dump(mode="json"),
                created_at=now,
                updated_at=now,
            )
        )
        if sections:
            await self.session.execute(
                sa.insert(templates),
                [
                    {
                        "id": self.generate_uuid(),
                        "definition_id": definition_id,
                        "section_index": s.index,
                        "name": s.name,
                        "prompt": s.prompt,
                        "word_count_target": s.word_count_target,
                        "is_active": s.is_active,
                    }
                    for s in sections
                ],
            )
        return CodexDefinition(
            id=definition_id,
            name=name,
            system_prompt=system_prompt,
            display_order=display_order,
            is_active=is_active,
            depends_on_source=depends_on_source,
            word_count_min=word_count_min,
            word_count_max=word_count_max,
            execution=execution,
            sections=sorted(sections, key=lambda s: s.index),
        )

    async def get_by_id(self, entity_id: UUID) -> CodexDefinition | None:
        """Get a definition with its section templates and prerequisite ids."""
        found = await self._load(sa.select(codex_definitions).where(codex_definitions.c.id == entity_id))
        return found[0] if found else None

    async def list_active(self) -> list[CodexDefinition]:
        """Active definitions in display order."""
        return await self._load(
            sa.select(codex_definitions)
            .where(codex_definitions.c.is_active.is_(True))
            .order_by(codex_definitions.c.display_order, codex_definitions.c.name)
        )

    async def get_many(self, ids: list[UUID]) -> list[CodexDefinition]:
        if not ids:
            return []
        return await self._load(
            sa.select(codex_definitions)
            .where(codex_definitions.c.id.in_(ids))
            .order_by(codex_definitions.c.display_order, codex_definitions.c.name)
        )

    async def names_by_id(self) -> dict[UUID, str]:
        result = await self.session.execute(
            sa.select(codex_definitions.c.id, codex_definitions.c.name)
        )
        return {row[0]: row[1] for row in result.fetchall()}

    async def list_edges(self) -> dict[UUID, set[UUID]]:
        """definition_id -> set of prerequisite definition ids."""
        result = await self.session.execute(
            sa.select(prereqs.c.definition_id, prereqs.c.prerequisite_id)
        )
        edges: dict[UUID, set[UUID]] = defaultdict(set)
        for definition_id, prerequisite_id in result.fetchall():
            edges[definition_id].add(prerequisite_id)
        return dict(edges)

    async def add_prerequisite(self, definition_id: UUID, prerequisite_id: UUID) -> None:
        """Add a prerequisite edge.

        Both definition rows are locked before the graph is read, so two
        concurrent inserts of opposite edges cannot both pass the cycle check.
        SQLite sessions already hold the write lock from BEGIN IMMEDIATE.

        Raises:
            DefinitionNotFoundError: either definition does not exist
            CircularDependencyError: the edge would close a cycle
        """
        await self.session.execute(
            sa.select(codex_definitions.c.id)
            .where(codex_definitions.c.id.in_([definition_id, prerequisite_id]))
            .with_for_update()
        )
        names = await self.names_by_id()
        for missing in (definition_id, prerequisite_id):
            if missing not in names:
                raise DefinitionNotFoundError(f"Codex definition not found: {missing}")
        edges = await self.list_edges()
        if prerequisite_id in edges.get(definition_id, set()):
            return
        if would_create_cycle(edges, definition_id, prerequisite_id):
            raise CircularDependencyError(definition_id, prerequisite_id)
        await self.session.execute(
            sa.insert(prereqs).values(definition_id=definition_id, prerequisite_id=prerequisite_id)
        )

    async def remove_prerequisite(self, definition_id: UUID, prerequisite_id: UUID) -> bool:
        result = await self.session.execute(
            sa.delete(prereqs).where(
                prereqs.c.definition_id == definition_id,
                prereqs.c.prerequisite_id == prerequisite_id,
            )
        )
        return result.rowcount > 0

    async def _load(self, stmt: sa.Select) -> list[CodexDefinition]:
        rows = await self._fetch_all(stmt)
        if not rows:
            return []
        ids = [r["id"] for r in rows]

        template_rows = await self._fetch_all(
            sa.select(templates)
            .where(templates.c.definition_id.in_(ids))
            .order_by(templates.c.section_index)
        )
        sections: dict[UUID, list[SectionTemplate]] = defaultdict(list)
        for t in template_rows:
            sections[t["definition_id"]].append(
                SectionTemplate(
                    index=t["section_index"],
                    name=t["name"],
                    prompt=t["prompt"] or "",
                    word_count_target=t["word_count_target"],
                    is_active=t["is_active"],
                )
            )

        edge_rows = await self.session.execute(
            sa.select(prereqs.c.definition_id, prereqs.c.prerequisite_id).where(
                prereqs.c.definition_id.in_(ids)
            )
        )
        prereq_ids: dict[UUID, list[UUID]] = defaultdict(list)
        for definition_id, prerequisite_id in edge_rows.fetchall():
            prereq_ids[definition_id].append(prerequisite_id)

        return [
            CodexDefinition.model_validate(
                {
                    **row,
                    "sections": sections.get(row["id"], []),
                    "prerequisite_ids": prereq_ids.get(row["id"], []),
                }
            )
            for row in rows
        ]
