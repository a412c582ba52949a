"""Dependency resolution between the codexes of a run.

Pure functions over already-loaded rows; the orchestrator does the I/O.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from uuid import UUID

from codexgen.contracts.enums import CodexStatus
from codexgen.contracts.models import Codex, Section


@dataclass
class BlockedCodexes:
    """Not-started codexes that cannot start yet."""

    waiting: list[Codex] = field(default_factory=list)
    unsatisfiable: list[tuple[Codex, str]] = field(default_factory=list)


def _is_pending(codex: Codex) -> bool:
    return codex.status == CodexStatus.NOT_STARTED and codex.total_sections > 0


def completed_names(codexes: Iterable[Codex]) -> set[str]:
    """Names that satisfy a prerequisite.

    Codexes in ready/ready_with_errors, plus zero-section codexes, which are
    never started and never block anything.
    """
    return {c.name for c in codexes if c.status.is_success or c.total_sections == 0}


def _source_ok(codex: Codex, source_document: str | None) -> bool:
    return not codex.depends_on_source or bool(source_document and source_document.strip())


def find_ready(codexes: list[Codex], source_document: str | None) -> list[Codex]:
    """Not-started codexes whose prerequisites are all completed, in display order."""
    done = completed_names(codexes)
    return [
        c
        for c in codexes
        if _is_pending(c)
        and all(name in done for name in c.prerequisites)
        and _source_ok(c, source_document)
    ]


def classify_blocked(codexes: list[Codex], source_document: str | None) -> BlockedCodexes:
    """Split blocked not-started codexes into waiting and unsatisfiable."""
    done = completed_names(codexes)
    by_name = {c.name: c for c in codexes}
    blocked = BlockedCodexes()
    for codex in codexes:
        if not _is_pending(codex):
            continue
        if not _source_ok(codex, source_document):
            blocked.unsatisfiable.append(
                (codex, "Source document required but not provided for this run")
            )
            continue
        reason = None
        waiting = False
        for name in codex.prerequisites:
            if name in done:
                continue
            prereq = by_name.get(name)
            if prereq is None:
                reason = f"Prerequisite codex {name} is not part of this run"
                break
            if prereq.status == CodexStatus.FAILED:
                reason = f"Prerequisite codex {name} failed"
                break
            waiting = True
        if reason is not None:
            blocked.unsatisfiable.append((codex, reason))
        elif waiting:
            blocked.waiting.append(codex)
    return blocked


def format_codex_content(name: str, sections: list[Section]) -> str:
    """One prerequisite's completed sections under its CONTENT FROM header."""
    parts = [f"\n=== CONTENT FROM: {name.upper()} ===\n\n"]
    for section in sorted(sections, key=lambda s: s.section_index):
        parts.append(f"=== {section.name} ===\n{section.content or ''}\n\n")
    return "".join(parts)


def assemble_prerequisite_content(
    codex: Codex,
    codexes: list[Codex],
    completed_sections: Mapping[UUID, list[Section]],
    source_document: str | None,
) -> str | None:
    """Context handed to a ready codex.

    The raw source document when the codex depends on it, followed by the
    completed sections of each prerequisite in declaration order.
    Prerequisites with no completed sections contribute nothing.
    """
    by_name = {c.name: c for c in codexes}
    chunks: list[str] = []
    if codex.depends_on_source and source_document:
        chunks.append(source_document)
    for name in codex.prerequisites:
        prereq = by_name.get(name)
        if prereq is None:
            continue
        sections = completed_sections.get(prereq.id) or []
        if sections:
            chunks.append(format_codex_content(name, sections))
    return "".join(chunks) or None


def would_create_cycle(
    edges: Mapping[UUID, set[UUID]], codex_id: UUID, candidate_id: UUID
) -> bool:
    """True if making candidate a prerequisite of codex closes a cycle.

    Walks the candidate's prerequisite chain depth-first looking for codex_id.
    """
    if codex_id == candidate_id:
        return True
    stack = [candidate_id]
    seen: set[UUID] = set()
    while stack:
        current = stack.pop()
        if current == codex_id:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(edges.get(current, ()))
    return False
