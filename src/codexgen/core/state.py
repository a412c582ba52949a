"""Transition tables for run, codex, section and queue-item status."""

from enum import Enum
from typing import TypeVar

from codexgen.contracts.enums import CodexStatus, QueueStatus, RunStatus, SectionStatus
from codexgen.core.errors import IllegalTransitionError

S = TypeVar("S", bound=Enum)

RUN_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.GENERATING}),
    RunStatus.GENERATING: frozenset({RunStatus.COMPLETED}),
    # administrative override when new codexes are queued onto a finished run
    RunStatus.COMPLETED: frozenset({RunStatus.GENERATING}),
}

CODEX_TRANSITIONS: dict[CodexStatus, frozenset[CodexStatus]] = {
    CodexStatus.NOT_STARTED: frozenset({CodexStatus.GENERATING, CodexStatus.FAILED}),
    CodexStatus.GENERATING: frozenset(
        {CodexStatus.READY, CodexStatus.READY_WITH_ERRORS, CodexStatus.FAILED}
    ),
    CodexStatus.READY: frozenset({CodexStatus.GENERATING}),
    CodexStatus.READY_WITH_ERRORS: frozenset({CodexStatus.GENERATING}),
    CodexStatus.FAILED: frozenset({CodexStatus.GENERATING, CodexStatus.NOT_STARTED}),
}

SECTION_TRANSITIONS: dict[SectionStatus, frozenset[SectionStatus]] = {
    SectionStatus.PENDING: frozenset({SectionStatus.GENERATING, SectionStatus.ERROR}),
    SectionStatus.GENERATING: frozenset(
        {SectionStatus.COMPLETED, SectionStatus.ERROR, SectionStatus.PENDING}
    ),
    SectionStatus.ERROR: frozenset({SectionStatus.PENDING, SectionStatus.GENERATING}),
    SectionStatus.COMPLETED: frozenset({SectionStatus.GENERATING}),
}

QUEUE_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.PENDING: frozenset(
        {QueueStatus.PROCESSING, QueueStatus.CANCELLED, QueueStatus.PENDING}
    ),
    QueueStatus.PROCESSING: frozenset(
        {QueueStatus.COMPLETED, QueueStatus.FAILED, QueueStatus.CANCELLED}
    ),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.FAILED: frozenset({QueueStatus.PENDING}),
    QueueStatus.CANCELLED: frozenset({QueueStatus.PENDING}),
}

_TABLES: dict[type[Enum], tuple[str, dict]] = {
    RunStatus: ("run", RUN_TRANSITIONS),
    CodexStatus: ("codex", CODEX_TRANSITIONS),
    SectionStatus: ("section", SECTION_TRANSITIONS),
    QueueStatus: ("queue item", QUEUE_TRANSITIONS),
}


def can_transition(current: S, target: S) -> bool:
    """Return True if the transition table for the status type allows current -> target."""
    _, table = _TABLES[type(current)]
    return target in table.get(current, frozenset())


def ensure_transition(current: S, target: S) -> None:
    """Raise IllegalTransitionError unless current -> target is allowed."""
    entity, _ = _TABLES[type(current)]
    if not can_transition(current, target):
        raise IllegalTransitionError(entity, current, target)
