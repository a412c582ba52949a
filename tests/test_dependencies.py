"""Tests for dependency resolution between a run's codexes."""

from uuid import uuid4

from codexgen.contracts.enums import CodexStatus, SectionStatus
from codexgen.contracts.models import Codex, CodexSnapshot, Section, SectionTemplate
from codexgen.orchestration.dependencies import (
    assemble_prerequisite_content,
    classify_blocked,
    completed_names,
    find_ready,
    format_codex_content,
    would_create_cycle,
)

RUN_ID = uuid4()


def codex(
    name: str,
    status: CodexStatus = CodexStatus.NOT_STARTED,
    prerequisites: list[str] | None = None,
    sections: int = 2,
    depends_on_source: bool = False,
    order: int = 0,
) -> Codex:
    snapshot = CodexSnapshot(
        name=name,
        sections=[SectionTemplate(index=i, name=f"s{i}") for i in range(sections)],
        prerequisites=prerequisites or [],
        depends_on_source=depends_on_source,
    )
    return Codex(
        id=uuid4(),
        run_id=RUN_ID,
        name=name,
        status=status,
        display_order=order,
        total_sections=sections,
        snapshot=snapshot,
    )


def section(codex_id, index: int, name: str, content: str) -> Section:
    return Section(
        id=uuid4(),
        codex_id=codex_id,
        section_index=index,
        name=name,
        status=SectionStatus.COMPLETED,
        content=content,
    )


class TestFindReady:
    """Readiness: not started, prerequisites completed, source present if required."""

    def test_no_prerequisites_is_ready(self) -> None:
        a = codex("A")
        assert find_ready([a], None) == [a]

    def test_waits_for_prerequisite(self) -> None:
        a = codex("A", status=CodexStatus.GENERATING)
        b = codex("B", prerequisites=["A"])
        assert find_ready([a, b], None) == []

    def test_ready_with_errors_satisfies(self) -> None:
        a = codex("A", status=CodexStatus.READY_WITH_ERRORS)
        b = codex("B", prerequisites=["A"])
        assert find_ready([a, b], None) == [b]

    def test_zero_section_codex_never_ready_never_blocks(self) -> None:
        """A zero-section codex is skipped and counts as satisfied."""
        empty = codex("Empty", sections=0)
        b = codex("B", prerequisites=["Empty"])
        assert find_ready([empty, b], None) == [b]
        assert "Empty" in completed_names([empty])

    def test_source_required(self) -> None:
        a = codex("A", depends_on_source=True)
        assert find_ready([a], None) == []
        assert find_ready([a], "   ") == []
        assert find_ready([a], "the document") == [a]

    def test_preserves_input_order(self) -> None:
        a, b, c = codex("A", order=1), codex("B", order=2), codex("C", order=3)
        assert find_ready([a, b, c], None) == [a, b, c]


class TestClassifyBlocked:
    def test_failed_prerequisite_is_unsatisfiable(self) -> None:
        a = codex("A", status=CodexStatus.FAILED)
        b = codex("B", prerequisites=["A"])
        blocked = classify_blocked([a, b], None)
        assert blocked.waiting == []
        assert [(c.name, reason) for c, reason in blocked.unsatisfiable] == [
            ("B", "Prerequisite codex A failed")
        ]

    def test_absent_prerequisite_is_unsatisfiable(self) -> None:
        b = codex("B", prerequisites=["Missing"])
        blocked = classify_blocked([b], None)
        assert "not part of this run" in blocked.unsatisfiable[0][1]

    def test_missing_source_is_unsatisfiable(self) -> None:
        a = codex("A", depends_on_source=True)
        blocked = classify_blocked([a], None)
        assert blocked.unsatisfiable[0][0] is a

    def test_pending_prerequisite_is_waiting(self) -> None:
        a = codex("A")
        b = codex("B", prerequisites=["A"])
        c = codex("C", prerequisites=["B"])
        blocked = classify_blocked([a, b, c], None)
        assert blocked.waiting == [b, c]
        assert blocked.unsatisfiable == []


class TestPrerequisiteContent:
    def test_format_codex_content(self) -> None:
        cid = uuid4()
        text = format_codex_content(
            "Profile", [section(cid, 1, "Goals", "g"), section(cid, 0, "Background", "b")]
        )
        assert text == (
            "\n=== CONTENT FROM: PROFILE ===\n\n"
            "=== Background ===\nb\n\n"
            "=== Goals ===\ng\n\n"
        )

    def test_source_then_prerequisites_in_declared_order(self) -> None:
        a = codex("A", status=CodexStatus.READY)
        b = codex("B", status=CodexStatus.READY)
        target = codex("T", prerequisites=["B", "A"], depends_on_source=True)
        content = assemble_prerequisite_content(
            target,
            [a, b, target],
            {a.id: [section(a.id, 0, "a0", "alpha")], b.id: [section(b.id, 0, "b0", "beta")]},
            "SOURCE",
        )
        assert content.startswith("SOURCE")
        assert content.index("CONTENT FROM: B") < content.index("CONTENT FROM: A")

    def test_nothing_to_hand_over(self) -> None:
        a = codex("A", status=CodexStatus.READY)
        target = codex("T", prerequisites=["A"])
        assert assemble_prerequisite_content(target, [a, target], {}, "ignored") is None


class TestCycleCheck:
    def test_self_edge(self) -> None:
        x = uuid4()
        assert would_create_cycle({}, x, x)

    def test_direct_and_transitive_cycles(self) -> None:
        """A <- B <- C: making C a prerequisite of A closes a cycle."""
        a, b, c = uuid4(), uuid4(), uuid4()
        edges = {b: {a}, c: {b}}
        assert would_create_cycle(edges, a, c)
        assert would_create_cycle(edges, a, b)
        assert not would_create_cycle(edges, c, a)

    def test_diamond_is_not_a_cycle(self) -> None:
        a, b, c, d = uuid4(), uuid4(), uuid4(), uuid4()
        edges = {b: {a}, c: {a}, d: {b}}
        assert not would_create_cycle(edges, d, c)
