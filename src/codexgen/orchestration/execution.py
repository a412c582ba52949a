"""Execution mode engine: single, parallel-merge and sequential-chain strategies."""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from codexgen.contracts.enums import ExecutionMode, UsageStatus
from codexgen.contracts.models import (
    CompletionResult,
    ExecutionConfig,
    ExecutionResult,
    ParallelMergeExecution,
    ProviderRef,
    SequentialChainExecution,
    SingleExecution,
    UsageRecord,
)
from codexgen.core.errors import AllGeneratorsFailedError, ChainStepError, ProviderError
from codexgen.core.ledger import UsageLedger
from codexgen.providers.gateway import ProviderGateway
from codexgen.providers.resolver import Resolver

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """Accounting labels attached to every usage record of one execution."""

    function_name: str = "generate-codex-section"
    run_id: UUID | None = None
    codex_id: UUID | None = None


def merge_prompt(instruction: str, results: list[CompletionResult]) -> str:
    """User prompt for the merge call of a parallel-merge execution."""
    parts = [instruction, ""]
    for r in results:
        parts.append(f"=== RESULT FROM {r.provider}({r.model}) ===")
        parts.append(r.content)
        parts.append("")
    return "\n".join(parts).rstrip() + "\n"


def chain_step_prompt(instruction: str | None, previous: str) -> str:
    if instruction and instruction.strip():
        return f"{instruction.strip()}\n\n{previous}"
    return previous


class ExecutionModeEngine:
    """Runs one execution config and returns a single text artifact.

    Every underlying provider call, failed ones included, yields one
    UsageRecord that is logged to the ledger as soon as the call returns.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        resolver: Resolver,
        ledger: UsageLedger,
    ) -> None:
        self.gateway = gateway
        self.resolver = resolver
        self.ledger = ledger

    async def execute(
        self,
        config: ExecutionConfig,
        system_prompt: str,
        user_prompt: str,
        *,
        context: ExecutionContext | None = None,
        max_tokens: int | None = None,
    ) -> ExecutionResult:
        context = context or ExecutionContext()
        usage: list[UsageRecord] = []
        if isinstance(config, SingleExecution):
            result = await self._call(
                config.provider, system_prompt, user_prompt, config.mode, context, usage, max_tokens
            )
            content = result.content
        elif isinstance(config, ParallelMergeExecution):
            content = await self._parallel_merge(
                config, system_prompt, user_prompt, context, usage, max_tokens
            )
        elif isinstance(config, SequentialChainExecution):
            content = await self._sequential_chain(
                config, system_prompt, user_prompt, context, usage, max_tokens
            )
        else:
            raise TypeError(f"Unknown execution config: {type(config).__name__}")
        return ExecutionResult(content=content, usage=usage)

    async def _parallel_merge(
        self,
        config: ParallelMergeExecution,
        system_prompt: str,
        user_prompt: str,
        context: ExecutionContext,
        usage: list[UsageRecord],
        max_tokens: int | None,
    ) -> str:
        outcomes = await asyncio.gather(
            *(
                self._call(ref, system_prompt, user_prompt, config.mode, context, usage, max_tokens)
                for ref in config.generators
            ),
            return_exceptions=True,
        )
        successes: list[CompletionResult] = []
        errors: list[str] = []
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                errors.append(str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                successes.append(outcome)

        if not successes:
            raise AllGeneratorsFailedError(errors)
        if errors:
            logger.warning(
                f"{len(errors)} of {len(outcomes)} generators failed, merging {len(successes)} results"
            )

        merged = await self._call(
            config.merge,
            system_prompt,
            merge_prompt(config.merge_instruction, successes),
            config.mode,
            context,
            usage,
            max_tokens,
        )
        return merged.content

    async def _sequential_chain(
        self,
        config: SequentialChainExecution,
        system_prompt: str,
        user_prompt: str,
        context: ExecutionContext,
        usage: list[UsageRecord],
        max_tokens: int | None,
    ) -> str:
        current = user_prompt
        for index, step in enumerate(config.steps):
            try:
                result = await self._call(
                    step.provider,
                    system_prompt,
                    chain_step_prompt(step.instruction, current),
                    config.mode,
                    context,
                    usage,
                    max_tokens,
                )
            except ProviderError as e:
                raise ChainStepError(index, str(e)) from e
            current = result.content
        return current

    async def _call(
        self,
        ref: ProviderRef,
        system_prompt: str,
        user_prompt: str,
        mode: ExecutionMode,
        context: ExecutionContext,
        usage: list[UsageRecord],
        max_tokens: int | None,
    ) -> CompletionResult:
        provider = await self.resolver.resolve(ref.provider_id, ref.model)
        try:
            result = await self.gateway.call(system_prompt, user_prompt, provider, max_tokens)
        except ProviderError as e:
            record = self.ledger.build(
                function_name=context.function_name,
                provider=provider.provider_code,
                model=provider.model,
                status=UsageStatus.ERROR,
                error=str(e),
                execution_mode=mode,
                run_id=context.run_id,
                codex_id=context.codex_id,
            )
            usage.append(record)
            await self.ledger.record(record)
            raise
        record = self.ledger.build(
            function_name=context.function_name,
            provider=result.provider,
            model=result.model,
            usage=result.usage,
            execution_mode=mode,
            run_id=context.run_id,
            codex_id=context.codex_id,
        )
        usage.append(record)
        await self.ledger.record(record)
        return result
