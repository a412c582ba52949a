"""Run orchestrator: drives a run's codexes from not_started to a terminal status."""

import asyncio
import logging
from typing import Any
from uuid import UUID

from codexgen.contracts.enums import CodexStatus, RunStatus, SectionStatus
from codexgen.contracts.models import Codex, ProviderRef, Run, Section
from codexgen.core.errors import ConfigurationError, NotFoundError
from codexgen.core.ledger import (
    DbUsageSink,
    JsonLogUsageSink,
    PricingTable,
    UsageLedger,
)
from codexgen.db.repos import CodexRepo, DefinitionRepo, RunRepo, SectionRepo
from codexgen.db.session import db_session
from codexgen.orchestration.dependencies import (
    assemble_prerequisite_content,
    classify_blocked,
    find_ready,
)
from codexgen.orchestration.execution import ExecutionModeEngine
from codexgen.orchestration.notifications import Notifier, notifier_from_settings
from codexgen.orchestration.sections import (
    CANCELLED_MESSAGE,
    CancelCheck,
    SectionBatchExecutor,
)
from codexgen.providers.gateway import ProviderGateway
from codexgen.providers.resolver import ProviderResolver, Resolver
from codexgen.settings import get_settings

logger = logging.getLogger(__name__)

DEPENDENCY_TIMEOUT_MESSAGE = "Timed out waiting for prerequisite codexes"


class RunOrchestrator:
    """Ties dependency resolution and section execution together for a run.

    Status only ever propagates through persisted rows: every loop
    iteration re-reads the run's codexes, so several orchestrators may
    work on the same run and compare-and-set claims keep them from
    running the same codex twice.
    """

    def __init__(
        self,
        gateway: ProviderGateway | None = None,
        resolver: Resolver | None = None,
        ledger: UsageLedger | None = None,
        notifier: Notifier | None = None,
        batch_size: int | None = None,
        poll_interval_seconds: float | None = None,
        max_poll_attempts: int | None = None,
        stale_section_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self.ledger = ledger or UsageLedger(
            PricingTable.with_overrides(settings.get_pricing_overrides()),
            sinks=[JsonLogUsageSink(), DbUsageSink()],
        )
        self.engine = ExecutionModeEngine(
            gateway or ProviderGateway(), resolver or ProviderResolver(settings), self.ledger
        )
        self.executor = SectionBatchExecutor(
            self.engine, batch_size or settings.section_batch_size, stale_section_seconds
        )
        self.notifier = notifier or notifier_from_settings(settings.notification_webhook_url)
        self.poll_interval_seconds = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.dependency_poll_interval
        )
        self.max_poll_attempts = (
            max_poll_attempts if max_poll_attempts is not None else settings.dependency_max_attempts
        )

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def create_run(
        self,
        subject_id: str,
        answers: dict[str, Any] | None = None,
        source_document: str | None = None,
        definition_ids: list[UUID] | None = None,
        provider_override: ProviderRef | None = None,
    ) -> tuple[Run, list[Codex]]:
        """Create a pending run with one codex per active (or selected) definition."""
        async with db_session() as session:
            definitions_repo = DefinitionRepo(session)
            if definition_ids is None:
                definitions = await definitions_repo.list_active()
            else:
                definitions = await definitions_repo.get_many(definition_ids)
            names = await definitions_repo.names_by_id()

            run = await RunRepo(session).create_run(subject_id, answers, source_document)
            codex_repo = CodexRepo(session)
            codexes = []
            for definition in definitions:
                prerequisite_names = [names[p] for p in definition.prerequisite_ids if p in names]
                codexes.append(
                    await codex_repo.create_codex(
                        run_id=run.id,
                        definition_id=definition.id,
                        name=definition.name,
                        snapshot=definition.snapshot(prerequisite_names),
                        display_order=definition.display_order,
                        provider_override=provider_override,
                    )
                )
            await session.commit()

        logger.info(f"Created run {run.id} for subject {subject_id} with {len(codexes)} codexes")
        return run, codexes

    async def attach_source_document(self, run_id: UUID, source_document: str) -> Run:
        """Store the raw source document that source-flagged codexes consume."""
        async with db_session() as session:
            repo = RunRepo(session)
            if not await repo.set_source_document(run_id, source_document):
                raise NotFoundError("run", run_id)
            await session.commit()
            run = await repo.get_by_id(run_id)
        logger.info(f"Attached source document ({len(source_document)} chars) to run {run_id}")
        return run

    async def get_run(self, run_id: UUID) -> tuple[Run, list[Codex]]:
        async with db_session() as session:
            run = await RunRepo(session).get_by_id(run_id)
            if run is None:
                raise NotFoundError("run", run_id)
            codexes = await CodexRepo(session).list_for_run(run_id)
        return run, codexes

    async def cancel_run(self, run_id: UUID) -> Run:
        """Flag the run; in-flight calls finish, nothing new starts."""
        async with db_session() as session:
            repo = RunRepo(session)
            if not await repo.set_cancel_requested(run_id, True):
                raise NotFoundError("run", run_id)
            await session.commit()
            run = await repo.get_by_id(run_id)
        logger.info(f"Cancellation requested for run {run_id}")
        return run

    async def resume_run(self, run_id: UUID) -> Run:
        """Clear the cancel flag and return cancelled codexes to not_started."""
        async with db_session() as session:
            run_repo = RunRepo(session)
            if not await run_repo.set_cancel_requested(run_id, False):
                raise NotFoundError("run", run_id)
            codex_repo = CodexRepo(session)
            reset = 0
            for codex in await codex_repo.list_for_run(run_id):
                if codex.cancel_requested:
                    await codex_repo.set_cancel_requested(codex.id, False)
                if codex.status == CodexStatus.FAILED and codex.error_message == CANCELLED_MESSAGE:
                    reset += await codex_repo.transition(
                        codex.id, CodexStatus.FAILED, CodexStatus.NOT_STARTED
                    )
            run = await run_repo.get_by_id(run_id)
            if reset and run.status == RunStatus.COMPLETED:
                await run_repo.transition(run_id, RunStatus.COMPLETED, RunStatus.GENERATING)
            await session.commit()
            run = await run_repo.get_by_id(run_id)
        logger.info(f"Resumed run {run_id} ({reset} cancelled codexes reset)")
        return run

    async def generate_section(
        self,
        codex_id: UUID,
        section_index: int,
        input_context: dict[str, Any] | str | None,
        prerequisite_content: str | None = None,
        codex_name: str | None = None,
    ) -> Section:
        """Single-section trigger with caller-supplied context.

        When ``codex_name`` is given it must match the codex name.
        """
        if codex_name is not None:
            async with db_session() as session:
                codex = await CodexRepo(session).get_by_id(codex_id)
            if codex is None:
                raise NotFoundError("codex", codex_id)
            if codex.name != codex_name:
                raise ConfigurationError(
                    f"Codex {codex_id} is {codex.name!r}, not {codex_name!r}"
                )
        return await self.executor.generate_section(
            codex_id, section_index, input_context, prerequisite_content
        )

    async def regenerate_section(self, section_id: UUID) -> Section:
        """Regenerate one section from its run's answers and prerequisites."""
        async with db_session() as session:
            section = await SectionRepo(session).get_by_id(section_id)
            if section is None:
                raise NotFoundError("section", section_id)
            codex = await CodexRepo(session).get_by_id(section.codex_id)
            if codex is None:
                raise NotFoundError("codex", section.codex_id)
            run = await RunRepo(session).get_by_id(codex.run_id)
            if run is None:
                raise NotFoundError("run", codex.run_id)
        content = await self._prerequisite_content(run, codex)
        regenerated = await self.executor.generate_section(
            codex.id, section.section_index, run.answers, content, regenerate=True
        )
        logger.info(
            f"Regenerated section {section.section_index} of {codex.name} "
            f"(count={regenerated.regeneration_count})"
        )
        return regenerated

    async def retry_error_sections(
        self, run_id: UUID | None = None, codex_id: UUID | None = None
    ) -> list[Codex]:
        """Re-run errored and abandoned sections of one codex or of every codex in a run.

        Codexes that failed before creating any section go back to
        not_started and are picked up by the orchestration loop.
        """
        if run_id is None and codex_id is None:
            raise ValueError("run_id or codex_id is required")

        async with db_session() as session:
            codex_repo = CodexRepo(session)
            section_repo = SectionRepo(session)
            if codex_id is not None:
                codex = await codex_repo.get_by_id(codex_id)
                if codex is None:
                    raise NotFoundError("codex", codex_id)
                run_id = codex.run_id
                targets = [codex]
            else:
                targets = await codex_repo.list_for_run(run_id)
            run_repo = RunRepo(session)
            run = await run_repo.get_by_id(run_id)
            if run is None:
                raise NotFoundError("run", run_id)

            retried: list[Codex] = []
            for codex in targets:
                if codex.status not in (CodexStatus.READY_WITH_ERRORS, CodexStatus.FAILED):
                    continue
                await section_repo.reset_stale(codex.id, self.executor.stale_cutoff())
                counts = await section_repo.count_by_status(codex.id)
                if codex.status == CodexStatus.FAILED and not counts:
                    await codex_repo.transition(codex.id, CodexStatus.FAILED, CodexStatus.NOT_STARTED)
                    continue
                if not (counts.get(SectionStatus.ERROR) or counts.get(SectionStatus.PENDING)):
                    continue
                await section_repo.reset_errors(codex.id)
                if await codex_repo.transition(codex.id, codex.status, CodexStatus.GENERATING):
                    retried.append(codex)

            if run.status == RunStatus.COMPLETED:
                await run_repo.transition(run.id, RunStatus.COMPLETED, RunStatus.GENERATING)
            await session.commit()

        logger.info(f"Retrying {len(retried)} codexes with errored sections in run {run_id}")
        for codex in retried:
            content = await self._prerequisite_content(run, codex)
            await self.executor.run_codex(
                codex, run.answers, content, is_cancelled=self._cancel_check(codex.id)
            )
        await self.orchestrate(run_id)
        return retried

    # ------------------------------------------------------------------
    # Orchestration loop
    # ------------------------------------------------------------------

    async def orchestrate(self, run_id: UUID) -> Run | None:
        """Drive a run until every startable codex has finished.

        Returns the final run row, or None if the run does not exist.
        """
        async with db_session() as session:
            run_repo = RunRepo(session)
            run = await run_repo.get_by_id(run_id)
            if run is None:
                logger.warning(f"Run {run_id} not found, nothing to orchestrate")
                return None
            if run.cancel_requested:
                logger.info(f"Run {run_id} is cancelled, not orchestrating")
                return run
            if run.status == RunStatus.COMPLETED:
                logger.info(f"Run {run_id} already completed")
                return run
            if run.status == RunStatus.PENDING:
                await run_repo.transition(run_id, RunStatus.PENDING, RunStatus.GENERATING)
                await session.commit()

        logger.info(f"Orchestrating run {run_id}")
        empty_polls = 0
        while True:
            if await self._run_cancelled(run_id):
                logger.info(f"Run {run_id} cancelled, stopping orchestration")
                return await self._reload_run(run_id)

            run, codexes = await self.get_run(run_id)
            blocked = classify_blocked(codexes, run.source_document)
            if blocked.unsatisfiable:
                await self._fail_codexes(blocked.unsatisfiable)

            ready = find_ready(codexes, run.source_document)
            if ready:
                empty_polls = 0
                for codex in ready:
                    if await self._run_cancelled(run_id):
                        break
                    await self._run_ready_codex(run, codex)
                continue

            in_progress = [c for c in codexes if c.status == CodexStatus.GENERATING]
            if not blocked.waiting and not in_progress:
                return await self._complete_run(run_id)

            empty_polls += 1
            if empty_polls > self.max_poll_attempts:
                if blocked.waiting:
                    logger.warning(
                        f"Run {run_id}: {len(blocked.waiting)} codexes still waiting after "
                        f"{self.max_poll_attempts} polls"
                    )
                    await self._fail_codexes(
                        [(c, DEPENDENCY_TIMEOUT_MESSAGE) for c in blocked.waiting]
                    )
                if in_progress:
                    logger.warning(
                        f"Run {run_id}: {len(in_progress)} codexes still generating elsewhere, "
                        "leaving run open"
                    )
                    return await self._reload_run(run_id)
                continue

            logger.debug(
                f"Run {run_id}: nothing ready, {len(blocked.waiting)} waiting, "
                f"poll {empty_polls}/{self.max_poll_attempts}"
            )
            await asyncio.sleep(self.poll_interval_seconds)

    async def _run_ready_codex(self, run: Run, codex: Codex) -> None:
        async with db_session() as session:
            claimed = await CodexRepo(session).transition(
                codex.id, CodexStatus.NOT_STARTED, CodexStatus.GENERATING
            )
            await session.commit()
        if not claimed:
            logger.info(f"Codex {codex.name} already claimed by another worker")
            return

        logger.info(f"Starting codex {codex.name} for run {run.id}")
        content = await self._prerequisite_content(run, codex)
        await self.executor.run_codex(
            codex, run.answers, content, is_cancelled=self._cancel_check(codex.id)
        )

    async def _prerequisite_content(self, run: Run, codex: Codex) -> str | None:
        async with db_session() as session:
            codexes = await CodexRepo(session).list_for_run(run.id)
            prereq_ids = [c.id for c in codexes if c.name in codex.prerequisites]
            sections = await SectionRepo(session).completed_for_codexes(prereq_ids)
        by_codex: dict[UUID, list[Section]] = {}
        for section in sections:
            by_codex.setdefault(section.codex_id, []).append(section)
        return assemble_prerequisite_content(codex, codexes, by_codex, run.source_document)

    async def _fail_codexes(self, failures: list[tuple[Codex, str]]) -> None:
        async with db_session() as session:
            repo = CodexRepo(session)
            for codex, reason in failures:
                if await repo.transition(
                    codex.id, CodexStatus.NOT_STARTED, CodexStatus.FAILED, reason
                ):
                    logger.warning(f"Codex {codex.name} cannot start: {reason}")
            await session.commit()

    async def _complete_run(self, run_id: UUID) -> Run:
        async with db_session() as session:
            completed = await RunRepo(session).transition(
                run_id, RunStatus.GENERATING, RunStatus.COMPLETED
            )
            await session.commit()
        run = await self._reload_run(run_id)
        if completed:
            logger.info(f"Run {run_id} completed")
            try:
                await self.notifier.run_completed(run)
            except Exception as e:
                logger.warning(f"Notifier failed for run {run_id}: {e}")
        return run

    async def _reload_run(self, run_id: UUID) -> Run | None:
        async with db_session() as session:
            return await RunRepo(session).get_by_id(run_id)

    async def _run_cancelled(self, run_id: UUID) -> bool:
        async with db_session() as session:
            return await RunRepo(session).is_cancel_requested(run_id)

    def _cancel_check(self, codex_id: UUID) -> CancelCheck:
        async def check() -> bool:
            async with db_session() as session:
                return await CodexRepo(session).is_cancel_requested(codex_id)

        return check
