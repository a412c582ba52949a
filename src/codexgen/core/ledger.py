"""Usage ledger: per-call token accounting and derived cost."""

import json
import logging
from typing import Any, Protocol
from uuid import UUID

from pydantic import BaseModel, Field

from codexgen.contracts.enums import ExecutionMode, UsageStatus
from codexgen.contracts.models import TokenUsage, UsageRecord

USAGE_LOGGER_NAME = "codexgen.usage"


class ModelRate(BaseModel):
    """Price per one million tokens for one model."""

    input: float = Field(ge=0)
    output: float = Field(ge=0)

    model_config = {"extra": "forbid"}


# USD per 1M tokens.
DEFAULT_PRICING: dict[str, ModelRate] = {
    # OpenAI
    "gpt-4o": ModelRate(input=2.5, output=10.0),
    "gpt-4o-mini": ModelRate(input=0.15, output=0.6),
    "gpt-4-turbo": ModelRate(input=10.0, output=30.0),
    "o1": ModelRate(input=15.0, output=60.0),
    "o1-mini": ModelRate(input=3.0, output=12.0),
    "gpt-5-2025-08-07": ModelRate(input=3.0, output=15.0),
    "gpt-5-mini-2025-08-07": ModelRate(input=0.3, output=1.2),
    "gpt-5-nano-2025-08-07": ModelRate(input=0.1, output=0.4),
    "gpt-4.1-2025-04-14": ModelRate(input=2.5, output=10.0),
    "gpt-4.1-mini-2025-04-14": ModelRate(input=0.15, output=0.6),
    "o3-2025-04-16": ModelRate(input=10.0, output=40.0),
    "o4-mini-2025-04-16": ModelRate(input=1.1, output=4.4),
    # Anthropic
    "claude-sonnet-4-20250514": ModelRate(input=3.0, output=15.0),
    "claude-3-5-sonnet-20241022": ModelRate(input=3.0, output=15.0),
    "claude-3-5-haiku-20241022": ModelRate(input=0.8, output=4.0),
    "claude-3-opus-20240229": ModelRate(input=15.0, output=75.0),
    # Gemini
    "gemini-2.0-flash": ModelRate(input=0.075, output=0.3),
    "gemini-1.5-pro": ModelRate(input=1.25, output=5.0),
    "gemini-1.5-flash": ModelRate(input=0.075, output=0.3),
    # DeepSeek
    "deepseek-chat": ModelRate(input=0.14, output=0.28),
    "deepseek-reasoner": ModelRate(input=0.55, output=2.19),
    # Perplexity
    "sonar": ModelRate(input=1.0, output=1.0),
    "sonar-pro": ModelRate(input=3.0, output=15.0),
    "sonar-reasoning": ModelRate(input=1.0, output=5.0),
}


class PricingTable:
    """Model -> ModelRate lookup; unknown models are free."""

    def __init__(self, rates: dict[str, ModelRate] | None = None) -> None:
        self._rates = dict(DEFAULT_PRICING if rates is None else rates)

    @classmethod
    def with_overrides(cls, overrides: dict[str, dict[str, float]]) -> "PricingTable":
        """Default table extended/overridden by {"model": {"input": x, "output": y}}."""
        rates = dict(DEFAULT_PRICING)
        for model, rate in overrides.items():
            rates[model] = ModelRate(**rate)
        return cls(rates)

    def rate_for(self, model: str) -> ModelRate:
        return self._rates.get(model, ModelRate(input=0.0, output=0.0))

    def __contains__(self, model: str) -> bool:
        return model in self._rates


def compute_cost(usage: TokenUsage, rate: ModelRate) -> float:
    """Compute dollars from token counts and a per-1M-token rate."""
    return (usage.prompt_tokens / 1_000_000) * rate.input + (
        usage.completion_tokens / 1_000_000
    ) * rate.output


class UsageSink(Protocol):
    """Protocol for persisting usage records."""

    async def write(self, record: UsageRecord) -> None:
        """Persist one usage record."""
        ...


class InMemoryUsageSink:
    """Sink that keeps UsageRecords in a list and supports per-run aggregation."""

    def __init__(self) -> None:
        self.records: list[UsageRecord] = []

    async def write(self, record: UsageRecord) -> None:
        self.records.append(record)

    def total_cost(self, run_id: UUID | None = None) -> float:
        """Sum cost for all records, optionally filtered by run_id."""
        subset = self.records if run_id is None else [r for r in self.records if r.run_id == run_id]
        return round(sum(r.cost for r in subset), 8)

    def summary(self, run_id: UUID | None = None) -> dict[str, Any]:
        """Aggregate cost by model and by provider. Optional run_id filter."""
        subset = self.records if run_id is None else [r for r in self.records if r.run_id == run_id]
        by_model: dict[str, float] = {}
        by_provider: dict[str, float] = {}
        for r in subset:
            by_model[r.model] = by_model.get(r.model, 0.0) + r.cost
            by_provider[r.provider] = by_provider.get(r.provider, 0.0) + r.cost
        return {"by_model": by_model, "by_provider": by_provider}


class JsonLogUsageSink:
    """Sink that writes one JSON line per record to logger codexgen.usage."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(USAGE_LOGGER_NAME)

    async def write(self, record: UsageRecord) -> None:
        self._logger.info(json.dumps(record.model_dump(mode="json")))


class DbUsageSink:
    """Sink that appends a usage_records row in its own short transaction."""

    async def write(self, record: UsageRecord) -> None:
        from codexgen.db.repos.usage import UsageRepo
        from codexgen.db.session import db_session

        async with db_session() as session:
            await UsageRepo(session).create(record)
            await session.commit()


class UsageLedger:
    """Prices provider calls and fans records out to sinks.

    Accounting never fails the caller: any sink error is logged on the
    codexgen.usage logger and dropped.
    """

    def __init__(
        self,
        pricing: PricingTable | None = None,
        sinks: list[UsageSink] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.pricing = pricing or PricingTable()
        self.sinks: list[UsageSink] = list(sinks) if sinks is not None else [JsonLogUsageSink()]
        self._logger = logger or logging.getLogger(USAGE_LOGGER_NAME)

    def build(
        self,
        *,
        function_name: str,
        provider: str,
        model: str,
        usage: TokenUsage | None = None,
        status: UsageStatus = UsageStatus.SUCCESS,
        error: str | None = None,
        execution_mode: ExecutionMode | None = None,
        run_id: UUID | None = None,
        codex_id: UUID | None = None,
    ) -> UsageRecord:
        """Build a priced UsageRecord without writing it."""
        usage = usage or TokenUsage()
        total = usage.total_tokens or usage.prompt_tokens + usage.completion_tokens
        return UsageRecord(
            run_id=run_id,
            codex_id=codex_id,
            function_name=function_name,
            provider=provider,
            model=model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=total,
            cost=compute_cost(usage, self.pricing.rate_for(model)),
            status=status,
            error_message=error,
            execution_mode=execution_mode,
        )

    async def record(self, record: UsageRecord) -> None:
        """Write a prebuilt record to every sink, swallowing sink failures."""
        for sink in self.sinks:
            try:
                await sink.write(record)
            except Exception as e:
                self._logger.error(
                    "Failed to log usage for %s/%s (%s): %s",
                    record.provider,
                    record.model,
                    record.function_name,
                    e,
                )

    async def log(
        self,
        *,
        function_name: str,
        provider: str,
        model: str,
        usage: TokenUsage | None = None,
        status: UsageStatus = UsageStatus.SUCCESS,
        error: str | None = None,
        execution_mode: ExecutionMode | None = None,
        run_id: UUID | None = None,
        codex_id: UUID | None = None,
    ) -> None:
        """Price and record one provider call."""
        try:
            record = self.build(
                function_name=function_name,
                provider=provider,
                model=model,
                usage=usage,
                status=status,
                error=error,
                execution_mode=execution_mode,
                run_id=run_id,
                codex_id=codex_id,
            )
        except Exception as e:
            self._logger.error("Failed to build usage record for %s/%s: %s", provider, model, e)
            return
        await self.record(record)
