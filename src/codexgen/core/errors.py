"""Exception hierarchy for codex generation."""

from typing import Any


class CodexGenError(Exception):
    """Base class for all codexgen errors."""


# Configuration errors: fatal to the affected codex/section, never auto-retried.


class ConfigurationError(CodexGenError):
    """Raised when stored configuration cannot support the requested work."""


class DefinitionNotFoundError(ConfigurationError):
    """Raised when a codex definition (or snapshot) is missing."""


class SectionTemplateNotFoundError(ConfigurationError):
    """Raised when a codex snapshot has no template for a section index."""


class ProviderUnavailableError(ConfigurationError):
    """Raised when no provider with usable credentials can be resolved."""


class UnsupportedProviderError(ConfigurationError):
    """Raised when the gateway has no wire translator for a provider code."""

    def __init__(self, provider_code: str) -> None:
        super().__init__(f"Unsupported provider: {provider_code}")
        self.provider_code = provider_code


class CircularDependencyError(ConfigurationError):
    """Raised when a prerequisite edge would close a dependency cycle."""

    def __init__(self, definition_id: Any, prerequisite_id: Any) -> None:
        super().__init__(
            f"Adding prerequisite {prerequisite_id} to {definition_id} would create a cycle"
        )
        self.definition_id = definition_id
        self.prerequisite_id = prerequisite_id


# Provider errors: transient, recoverable only by explicit retry.


class ProviderError(CodexGenError):
    """Non-2xx response or transport failure from an external provider."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.body = body


# Execution errors raised by the execution mode engine.


class ExecutionError(CodexGenError):
    """Raised when an execution strategy cannot produce an artifact."""


class AllGeneratorsFailedError(ExecutionError):
    """Every generator of a parallel-merge execution failed."""

    def __init__(self, errors: list[str]) -> None:
        joined = "; ".join(errors)
        super().__init__(f"All {len(errors)} generators failed: {joined}")
        self.errors = errors


class ChainStepError(ExecutionError):
    """A step of a sequential chain failed; later steps were not run."""

    def __init__(self, step_index: int, message: str) -> None:
        super().__init__(f"Chain step {step_index + 1} failed: {message}")
        self.step_index = step_index
        self.provider_message = message


class IllegalTransitionError(CodexGenError):
    """Raised when a status change is not allowed by the entity's transition table."""

    def __init__(self, entity: str, current: Any, target: Any) -> None:
        cur = getattr(current, "value", current)
        tgt = getattr(target, "value", target)
        super().__init__(f"Illegal {entity} transition: {cur} -> {tgt}")
        self.entity = entity
        self.current = current
        self.target = target


class NotFoundError(CodexGenError):
    """Raised when a run, codex, section or queue item does not exist."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id
