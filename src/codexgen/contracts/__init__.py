"""Canonical contracts for codex generation."""

from codexgen.contracts.enums import (
    CodexStatus,
    ExecutionMode,
    QueueStatus,
    RunStatus,
    SectionStatus,
    UsageStatus,
)
from codexgen.contracts.models import (
    DEFAULT_MERGE_INSTRUCTION,
    ChainStep,
    Codex,
    CodexDefinition,
    CodexSnapshot,
    CompletionResult,
    ExecutionConfig,
    ExecutionResult,
    ParallelMergeExecution,
    ProviderConfig,
    ProviderRef,
    QueueItem,
    Run,
    Section,
    SectionTemplate,
    SequentialChainExecution,
    SingleExecution,
    TokenUsage,
    UsageRecord,
)

__all__ = [
    "DEFAULT_MERGE_INSTRUCTION",
    "ChainStep",
    "Codex",
    "CodexDefinition",
    "CodexSnapshot",
    "CodexStatus",
    "CompletionResult",
    "ExecutionConfig",
    "ExecutionMode",
    "ExecutionResult",
    "ParallelMergeExecution",
    "ProviderConfig",
    "ProviderRef",
    "QueueItem",
    "QueueStatus",
    "Run",
    "RunStatus",
    "Section",
    "SectionStatus",
    "SectionTemplate",
    "SequentialChainExecution",
    "SingleExecution",
    "TokenUsage",
    "UsageRecord",
    "UsageStatus",
]
