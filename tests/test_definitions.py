"""Tests for codex definitions and their prerequisite graph."""

import asyncio
from uuid import uuid4

import pytest

from codexgen.contracts.models import ParallelMergeExecution, ProviderRef, SectionTemplate
from codexgen.core.errors import CircularDependencyError, DefinitionNotFoundError
from codexgen.db.repos import DefinitionRepo
from codexgen.db.session import db_session


async def add_edge(definition, prerequisite) -> None:
    async with db_session() as session:
        await DefinitionRepo(session).add_prerequisite(definition.id, prerequisite.id)
        await session.commit()


async def reload(definition):
    async with db_session() as session:
        return await DefinitionRepo(session).get_by_id(definition.id)


class TestPrerequisiteGraph:
    async def test_cycle_rejected(self, make_definition) -> None:
        a = await make_definition("A")
        b = await make_definition("B", prerequisites=[a])
        c = await make_definition("C", prerequisites=[b])

        with pytest.raises(CircularDependencyError):
            await add_edge(a, c)

        assert (await reload(a)).prerequisite_ids == []

    async def test_self_edge_rejected(self, make_definition) -> None:
        a = await make_definition("A")
        with pytest.raises(CircularDependencyError):
            await add_edge(a, a)

    async def test_duplicate_edge_is_idempotent(self, make_definition) -> None:
        a = await make_definition("A")
        b = await make_definition("B", prerequisites=[a])

        await add_edge(b, a)

        assert (await reload(b)).prerequisite_ids == [a.id]

    async def test_concurrent_opposite_edges_keep_graph_acyclic(self, make_definition) -> None:
        a = await make_definition("A")
        b = await make_definition("B")

        results = await asyncio.gather(add_edge(a, b), add_edge(b, a), return_exceptions=True)

        errors = [r for r in results if isinstance(r, CircularDependencyError)]
        assert len(errors) == 1
        assert results.count(None) == 1
        edges = (await reload(a)).prerequisite_ids + (await reload(b)).prerequisite_ids
        assert len(edges) == 1

    async def test_missing_definition(self, make_definition) -> None:
        a = await make_definition("A")
        async with db_session() as session:
            with pytest.raises(DefinitionNotFoundError):
                await DefinitionRepo(session).add_prerequisite(a.id, uuid4())

    async def test_remove_edge(self, make_definition) -> None:
        a = await make_definition("A")
        b = await make_definition("B", prerequisites=[a])
        async with db_session() as session:
            repo = DefinitionRepo(session)
            assert await repo.remove_prerequisite(b.id, a.id)
            assert not await repo.remove_prerequisite(b.id, a.id)
            await session.commit()
        assert (await reload(b)).prerequisite_ids == []


class TestSnapshot:
    async def test_snapshot_keeps_active_templates_in_order(self, database) -> None:
        templates = [
            SectionTemplate(index=2, name="Last", prompt="p2"),
            SectionTemplate(index=0, name="First", prompt="p0"),
            SectionTemplate(index=1, name="Retired", prompt="p1", is_active=False),
        ]
        async with db_session() as session:
            repo = DefinitionRepo(session)
            created = await repo.create_definition(
                name="Doc",
                sections=templates,
                execution=ParallelMergeExecution(
                    generators=[ProviderRef(model="a"), ProviderRef(model="b")]
                ),
            )
            await session.commit()
            stored = await repo.get_by_id(created.id)

        snapshot = stored.snapshot(["Intro"])

        assert [s.name for s in snapshot.sections] == ["First", "Last"]
        assert snapshot.prerequisites == ["Intro"]
        assert isinstance(snapshot.execution, ParallelMergeExecution)
        assert [g.model for g in snapshot.execution.generators] == ["a", "b"]

    async def test_inactive_definitions_not_listed(self, make_definition) -> None:
        await make_definition("Shown", display_order=2)
        await make_definition("First", display_order=1)
        await make_definition("Hidden", is_active=False)

        async with db_session() as session:
            active = await DefinitionRepo(session).list_active()

        assert [d.name for d in active] == ["First", "Shown"]
