"""Shared dependencies for the API routers."""

from codexgen.orchestration.orchestrator import RunOrchestrator
from codexgen.orchestration.queue_manager import QueueManager

_orchestrator: RunOrchestrator | None = None
_queue_manager: QueueManager | None = None


def get_orchestrator() -> RunOrchestrator:
    """Get the run orchestrator (singleton)."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = RunOrchestrator()
    return _orchestrator


def set_orchestrator(orchestrator: RunOrchestrator | None) -> None:
    """Set the run orchestrator (for testing). Also drops the cached queue manager."""
    global _orchestrator, _queue_manager
    _orchestrator = orchestrator
    _queue_manager = None


def get_queue_manager() -> QueueManager:
    """Get the queue manager (singleton), bound to the current orchestrator."""
    global _queue_manager
    if _queue_manager is None:
        _queue_manager = QueueManager(get_orchestrator())
    return _queue_manager
