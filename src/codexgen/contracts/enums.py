"""Canonical status and mode enums for runs, codexes, sections and queue items."""

from enum import Enum


class RunStatus(str, Enum):
    """Status of a subject's generation run."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"


class CodexStatus(str, Enum):
    """Status of a run-scoped codex."""

    NOT_STARTED = "not_started"
    GENERATING = "generating"
    READY = "ready"
    READY_WITH_ERRORS = "ready_with_errors"
    FAILED = "failed"

    @property
    def is_success(self) -> bool:
        return self in (CodexStatus.READY, CodexStatus.READY_WITH_ERRORS)

    @property
    def is_terminal(self) -> bool:
        return self in (CodexStatus.READY, CodexStatus.READY_WITH_ERRORS, CodexStatus.FAILED)


class SectionStatus(str, Enum):
    """Status of one generated section."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class QueueStatus(str, Enum):
    """Status of an administrative generation request."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueStatus.COMPLETED, QueueStatus.FAILED, QueueStatus.CANCELLED)


class ExecutionMode(str, Enum):
    """Strategy by which model calls produce one section's content."""

    SINGLE = "single"
    PARALLEL_MERGE = "parallel_merge"
    SEQUENTIAL_CHAIN = "sequential_chain"


class UsageStatus(str, Enum):
    """Outcome of one provider call as recorded in the usage ledger."""

    SUCCESS = "success"
    ERROR = "error"
