"""Section batch executor: idempotent section creation and bounded concurrent generation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from codexgen.contracts.enums import CodexStatus, SectionStatus
from codexgen.contracts.models import Codex, ExecutionConfig, Section, SingleExecution
from codexgen.core.errors import (
    DefinitionNotFoundError,
    NotFoundError,
    SectionTemplateNotFoundError,
)
from codexgen.db.repos import CodexRepo, SectionRepo
from codexgen.db.session import db_session
from codexgen.orchestration.execution import ExecutionContext, ExecutionModeEngine
from codexgen.orchestration.prompts import build_user_prompt
from codexgen.settings import get_settings

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], Awaitable[bool]]

CANCELLED_MESSAGE = "Generation cancelled"


async def _never_cancelled() -> bool:
    return False


def execution_config_for(codex: Codex) -> ExecutionConfig:
    """A provider override assigned by the queue forces single mode."""
    if codex.provider_override is not None:
        return SingleExecution(provider=codex.provider_override)
    if codex.snapshot is None:
        raise DefinitionNotFoundError(f"Codex {codex.name} has no definition snapshot")
    return codex.snapshot.execution


class SectionBatchExecutor:
    """Creates a codex's sections once and generates them in batches."""

    def __init__(
        self,
        engine: ExecutionModeEngine,
        batch_size: int | None = None,
        stale_after_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self.engine = engine
        self.batch_size = batch_size or settings.section_batch_size
        self.stale_after_seconds = (
            stale_after_seconds
            if stale_after_seconds is not None
            else settings.stale_section_seconds
        )
        self._locks: dict[UUID, asyncio.Lock] = {}

    def stale_cutoff(self) -> datetime:
        """Generating sections last updated before this are abandoned."""
        return datetime.now(timezone.utc) - timedelta(seconds=self.stale_after_seconds)

    def _lock_for(self, codex_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(codex_id)
        if lock is None:
            lock = self._locks[codex_id] = asyncio.Lock()
        return lock

    async def ensure_sections(self, codex: Codex) -> list[Section]:
        """Create exactly one row per snapshot template, or reuse existing rows.

        Serialized per codex in-process; across processes the
        (codex_id, section_index) unique constraint picks one winner and
        the loser re-reads the winner's rows.
        """
        async with self._lock_for(codex.id):
            async with db_session() as session:
                repo = SectionRepo(session)
                existing = await repo.list_for_codex(codex.id)
                if existing:
                    return existing
                if codex.snapshot is None:
                    raise DefinitionNotFoundError(f"Codex {codex.name} has no definition snapshot")
                try:
                    created = await repo.create_sections(codex.id, codex.snapshot.sections)
                    await session.commit()
                    logger.info(f"Created {len(created)} sections for codex {codex.name}")
                    return created
                except IntegrityError:
                    await session.rollback()
                    logger.info(f"Sections for codex {codex.name} created concurrently, re-reading")

            async with db_session() as session:
                return await SectionRepo(session).list_for_codex(codex.id)

    async def run_codex(
        self,
        codex: Codex,
        answers: dict[str, Any] | str | None,
        prerequisite_content: str | None = None,
        is_cancelled: CancelCheck | None = None,
    ) -> CodexStatus:
        """Generate every non-completed section of a codex that is already generating.

        Returns the terminal status written to the codex.
        """
        is_cancelled = is_cancelled or _never_cancelled
        try:
            config = execution_config_for(codex)
            sections = await self.ensure_sections(codex)
            async with db_session() as session:
                reclaimed = await SectionRepo(session).reset_stale(codex.id, self.stale_cutoff())
                await session.commit()
            if reclaimed:
                logger.warning(f"Reclaimed {reclaimed} abandoned sections of codex {codex.name}")
        except Exception as e:
            logger.error(f"Codex {codex.name} failed before generation: {e}")
            await self._finish(codex, CodexStatus.FAILED, str(e))
            return CodexStatus.FAILED

        todo = [s for s in sections if s.status != SectionStatus.COMPLETED]
        cancelled = False
        for start in range(0, len(todo), self.batch_size):
            if await is_cancelled():
                cancelled = True
                break
            batch = todo[start : start + self.batch_size]
            ran = await asyncio.gather(
                *(
                    self._run_section(codex, s, config, answers, prerequisite_content, is_cancelled)
                    for s in batch
                )
            )
            if not all(ran):
                cancelled = True
                break

        async with db_session() as session:
            counts = await SectionRepo(session).count_by_status(codex.id)
        completed = counts.get(SectionStatus.COMPLETED, 0)
        total = len(sections)

        if cancelled:
            status, message = CodexStatus.FAILED, CANCELLED_MESSAGE
        elif completed == total:
            status, message = CodexStatus.READY, None
        elif completed == 0:
            status, message = CodexStatus.FAILED, "No sections completed"
        else:
            status = CodexStatus.READY_WITH_ERRORS
            errored = counts.get(SectionStatus.ERROR, 0)
            message = f"{errored} of {total} sections failed"
            if completed + errored < total:
                message += f", {total - completed - errored} unfinished"

        await self._finish(codex, status, message, completed)
        logger.info(f"Codex {codex.name} finished as {status.value} ({completed}/{total} sections)")
        return status

    async def generate_section(
        self,
        codex_id: UUID,
        section_index: int,
        input_context: dict[str, Any] | str | None,
        prerequisite_content: str | None = None,
        regenerate: bool = False,
    ) -> Section:
        """Generate (or regenerate) one section of a codex by index."""
        async with db_session() as session:
            codex = await CodexRepo(session).get_by_id(codex_id)
        if codex is None:
            raise NotFoundError("codex", codex_id)
        config = execution_config_for(codex)
        sections = await self.ensure_sections(codex)
        section = next((s for s in sections if s.section_index == section_index), None)
        if section is None:
            raise SectionTemplateNotFoundError(
                f"Section {section_index} not found for codex {codex.name}"
            )
        await self._run_section(
            codex, section, config, input_context, prerequisite_content, regenerate=regenerate
        )
        async with db_session() as session:
            refreshed = await SectionRepo(session).get_by_id(section.id)
        return refreshed or section

    async def _run_section(
        self,
        codex: Codex,
        section: Section,
        config: ExecutionConfig,
        answers: dict[str, Any] | str | None,
        prerequisite_content: str | None,
        is_cancelled: CancelCheck | None = None,
        regenerate: bool = False,
    ) -> bool:
        """Run one section. Returns False only if skipped for cancellation."""
        if is_cancelled is not None and await is_cancelled():
            return False

        template = codex.snapshot.template_for(section.section_index) if codex.snapshot else None

        async with db_session() as session:
            repo = SectionRepo(session)
            current = await repo.get_by_id(section.id)
            if current is None or current.status == SectionStatus.GENERATING:
                return True
            if current.status == SectionStatus.COMPLETED and not regenerate:
                return True
            if template is None:
                if current.status == SectionStatus.PENDING:
                    await repo.transition(
                        section.id,
                        SectionStatus.PENDING,
                        SectionStatus.ERROR,
                        error_message=f"No section template for index {section.section_index}",
                    )
                    await session.commit()
                return True
            fields: dict[str, Any] = {"error_message": None}
            if regenerate:
                fields["regeneration_count"] = current.regeneration_count + 1
                fields["last_regenerated_at"] = repo.now()
            elif current.status == SectionStatus.ERROR:
                fields["retries"] = current.retries + 1
            if not await repo.transition(section.id, current.status, SectionStatus.GENERATING, **fields):
                return True
            await session.commit()

        system_prompt = codex.snapshot.system_prompt
        user_prompt = build_user_prompt(codex.snapshot, template, answers, prerequisite_content)
        try:
            result = await self.engine.execute(
                config,
                system_prompt,
                user_prompt,
                context=ExecutionContext(run_id=codex.run_id, codex_id=codex.id),
            )
        except Exception as e:
            logger.warning(f"Section {section.section_index} of {codex.name} failed: {e}")
            async with db_session() as session:
                await SectionRepo(session).transition(
                    section.id, SectionStatus.GENERATING, SectionStatus.ERROR, error_message=str(e)
                )
                await session.commit()
            return True

        async with db_session() as session:
            repo = SectionRepo(session)
            await repo.transition(
                section.id, SectionStatus.GENERATING, SectionStatus.COMPLETED, content=result.content
            )
            counts = await repo.count_by_status(codex.id)
            await CodexRepo(session).update_progress(
                codex.id, counts.get(SectionStatus.COMPLETED, 0)
            )
            await session.commit()
        return True

    async def _finish(
        self,
        codex: Codex,
        status: CodexStatus,
        message: str | None,
        completed: int | None = None,
    ) -> None:
        async with db_session() as session:
            repo = CodexRepo(session)
            if completed is not None:
                await repo.update_progress(codex.id, completed)
            if not await repo.transition(codex.id, CodexStatus.GENERATING, status, message):
                logger.warning(f"Codex {codex.name} was not generating when finishing as {status.value}")
            await session.commit()
