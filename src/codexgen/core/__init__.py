"""Core: errors, state transitions, usage ledger."""

from codexgen.core.errors import (
    AllGeneratorsFailedError,
    ChainStepError,
    CircularDependencyError,
    CodexGenError,
    ConfigurationError,
    DefinitionNotFoundError,
    ExecutionError,
    IllegalTransitionError,
    NotFoundError,
    ProviderError,
    ProviderUnavailableError,
    SectionTemplateNotFoundError,
    UnsupportedProviderError,
)
from codexgen.core.ledger import (
    DEFAULT_PRICING,
    DbUsageSink,
    InMemoryUsageSink,
    JsonLogUsageSink,
    ModelRate,
    PricingTable,
    UsageLedger,
    UsageSink,
    compute_cost,
)
from codexgen.core.state import can_transition, ensure_transition

__all__ = [
    "AllGeneratorsFailedError",
    "ChainStepError",
    "CircularDependencyError",
    "CodexGenError",
    "ConfigurationError",
    "DEFAULT_PRICING",
    "DbUsageSink",
    "DefinitionNotFoundError",
    "ExecutionError",
    "IllegalTransitionError",
    "InMemoryUsageSink",
    "JsonLogUsageSink",
    "ModelRate",
    "NotFoundError",
    "PricingTable",
    "ProviderError",
    "ProviderUnavailableError",
    "SectionTemplateNotFoundError",
    "UnsupportedProviderError",
    "UsageLedger",
    "UsageSink",
    "can_transition",
    "compute_cost",
    "ensure_transition",
]
