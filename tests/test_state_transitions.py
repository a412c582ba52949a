"""Tests for the status transition tables."""

import pytest

from codexgen.contracts.enums import CodexStatus, QueueStatus, RunStatus, SectionStatus
from codexgen.core.errors import IllegalTransitionError
from codexgen.core.state import (
    CODEX_TRANSITIONS,
    QUEUE_TRANSITIONS,
    RUN_TRANSITIONS,
    SECTION_TRANSITIONS,
    can_transition,
    ensure_transition,
)


class TestTablesExhaustive:
    """Every enum member has an entry in its table."""

    @pytest.mark.parametrize(
        "enum_cls,table",
        [
            (RunStatus, RUN_TRANSITIONS),
            (CodexStatus, CODEX_TRANSITIONS),
            (SectionStatus, SECTION_TRANSITIONS),
            (QueueStatus, QUEUE_TRANSITIONS),
        ],
    )
    def test_table_covers_enum(self, enum_cls, table) -> None:
        assert set(table) == set(enum_cls)
        for targets in table.values():
            assert targets <= set(enum_cls)


class TestQueueTransitions:
    """Queue lifecycle legality."""

    def test_cancel_only_from_pending_or_processing(self) -> None:
        allowed = {s for s in QueueStatus if can_transition(s, QueueStatus.CANCELLED)}
        assert allowed == {QueueStatus.PENDING, QueueStatus.PROCESSING}

    def test_retry_from_pending_failed_cancelled(self) -> None:
        allowed = {s for s in QueueStatus if can_transition(s, QueueStatus.PENDING)}
        assert allowed == {QueueStatus.PENDING, QueueStatus.FAILED, QueueStatus.CANCELLED}

    def test_completed_is_final(self) -> None:
        assert not any(can_transition(QueueStatus.COMPLETED, s) for s in QueueStatus)


class TestCodexAndRunTransitions:
    def test_not_started_cannot_jump_to_ready(self) -> None:
        assert not can_transition(CodexStatus.NOT_STARTED, CodexStatus.READY)

    def test_completed_run_can_be_reopened(self) -> None:
        assert can_transition(RunStatus.COMPLETED, RunStatus.GENERATING)

    def test_run_cannot_skip_generating(self) -> None:
        assert not can_transition(RunStatus.PENDING, RunStatus.COMPLETED)

    def test_section_regeneration_allowed_from_completed(self) -> None:
        assert can_transition(SectionStatus.COMPLETED, SectionStatus.GENERATING)


class TestEnsureTransition:
    def test_raises_with_entity_name(self) -> None:
        """Illegal moves raise IllegalTransitionError naming the entity."""
        with pytest.raises(IllegalTransitionError) as exc_info:
            ensure_transition(QueueStatus.COMPLETED, QueueStatus.PENDING)
        assert exc_info.value.entity == "queue item"
        assert "completed -> pending" in str(exc_info.value)

    def test_allowed_passes(self) -> None:
        ensure_transition(CodexStatus.GENERATING, CodexStatus.READY_WITH_ERRORS)
