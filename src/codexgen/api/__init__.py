"""HTTP trigger surface."""

from codexgen.api.definitions import router as definitions_router
from codexgen.api.queue import router as queue_router
from codexgen.api.runs import router as runs_router
from codexgen.api.sections import router as sections_router

__all__ = [
    "definitions_router",
    "queue_router",
    "runs_router",
    "sections_router",
]
