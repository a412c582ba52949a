"""Queue & retry manager for administrative generation requests."""

import logging
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from codexgen.contracts.enums import CodexStatus, QueueStatus, RunStatus
from codexgen.contracts.models import ProviderRef, QueueItem
from codexgen.core.errors import IllegalTransitionError, NotFoundError
from codexgen.core.state import can_transition
from codexgen.db.repos import CodexRepo, DefinitionRepo, QueueRepo, RunRepo
from codexgen.db.session import db_session
from codexgen.orchestration.orchestrator import RunOrchestrator

logger = logging.getLogger(__name__)

NO_RUN_MESSAGE = "No existing run with input found for subject"
DEFAULT_PROCESS_LIMIT = 10


class ProcessSummary(BaseModel):
    """Outcome of one process_pending pass."""

    processed: int = 0
    completed: int = 0
    failed: int = 0
    run_ids: list[UUID] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class QueueManager:
    """Durable list of (subject, codex definition) requests.

    Bulk operations validate every selected item before touching any of
    them and apply the change in one transaction.
    """

    def __init__(self, orchestrator: RunOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def enqueue(
        self,
        subject_ids: list[str],
        definition_ids: list[UUID],
        provider_id: UUID | None = None,
        model: str | None = None,
        triggered_by: str | None = None,
    ) -> list[QueueItem]:
        """One pending item per subject x definition pair, sharing a batch id."""
        pairs = [(s, d) for s in subject_ids for d in definition_ids]
        batch_id = uuid4()
        async with db_session() as session:
            items = await QueueRepo(session).create_items(
                pairs, batch_id, provider_id=provider_id, model=model, triggered_by=triggered_by
            )
            await session.commit()
        logger.info(f"Enqueued {len(items)} generation requests in batch {batch_id}")
        return items

    async def cancel(self, item_ids: list[UUID]) -> list[QueueItem]:
        """Cancel pending/processing items; processing items flag their codex."""
        async with db_session() as session:
            repo = QueueRepo(session)
            items = await self._load_all(repo, item_ids)
            self._validate(items, QueueStatus.CANCELLED)
            codex_repo = CodexRepo(session)
            for item in items:
                await self._apply(repo, item, QueueStatus.CANCELLED)
                if item.status == QueueStatus.PROCESSING and item.run_id is not None:
                    codex = await codex_repo.get_for_definition(item.run_id, item.definition_id)
                    if codex is not None:
                        await codex_repo.set_cancel_requested(codex.id, True)
            await session.commit()
            updated = await repo.get_many(item_ids)
        logger.info(f"Cancelled {len(updated)} queue items")
        return updated

    async def retry(self, item_ids: list[UUID], process: bool = True) -> list[QueueItem]:
        """Reset pending/failed/cancelled items to pending, then re-run the trigger path."""
        async with db_session() as session:
            repo = QueueRepo(session)
            items = await self._load_all(repo, item_ids)
            self._validate(items, QueueStatus.PENDING)
            for item in items:
                await self._apply(
                    repo,
                    item,
                    QueueStatus.PENDING,
                    error_message=None,
                    started_at=None,
                    completed_at=None,
                )
            await session.commit()
            updated = await repo.get_many(item_ids)
        logger.info(f"Reset {len(updated)} queue items to pending")
        if process:
            await self.process_pending()
        return updated

    async def retry_all_failed(self, process: bool = True) -> list[QueueItem]:
        async with db_session() as session:
            failed = await QueueRepo(session).list_by_status(QueueStatus.FAILED)
        if not failed:
            return []
        return await self.retry([i.id for i in failed], process=process)

    async def delete(self, item_ids: list[UUID]) -> int:
        """Delete items that are completed, failed or cancelled."""
        async with db_session() as session:
            repo = QueueRepo(session)
            items = await self._load_all(repo, item_ids)
            for item in items:
                if not item.status.is_terminal:
                    raise IllegalTransitionError("queue item", item.status, "deleted")
            deleted = 0
            for item in items:
                deleted += int(await repo.delete(item.id))
            await session.commit()
        logger.info(f"Deleted {deleted} queue items")
        return deleted

    async def process_pending(self, limit: int = DEFAULT_PROCESS_LIMIT) -> ProcessSummary:
        """Attach pending items to each subject's latest run and orchestrate it."""
        summary = ProcessSummary()
        async with db_session() as session:
            pending = await QueueRepo(session).list_by_status(QueueStatus.PENDING, limit)
        if not pending:
            logger.info("No pending queue items to process")
            return summary

        by_subject: dict[str, list[QueueItem]] = {}
        for item in pending:
            by_subject.setdefault(item.subject_id, []).append(item)

        for subject_id, items in by_subject.items():
            summary.processed += len(items)
            run_id = await self._attach_to_run(subject_id, items)
            if run_id is None:
                summary.failed += len(items)
                continue
            summary.run_ids.append(run_id)
            try:
                await self.orchestrator.orchestrate(run_id)
            except Exception as e:
                logger.exception(f"Orchestration failed for run {run_id}: {e}")
                await self._fail_processing(items, str(e))
            completed, failed = await self._finalize(run_id, items)
            summary.completed += completed
            summary.failed += failed

        logger.info(
            f"Processed {summary.processed} queue items: "
            f"{summary.completed} completed, {summary.failed} failed"
        )
        return summary

    async def _attach_to_run(self, subject_id: str, items: list[QueueItem]) -> UUID | None:
        async with db_session() as session:
            repo = QueueRepo(session)
            run_repo = RunRepo(session)
            run = await run_repo.latest_for_subject(subject_id)
            if run is None:
                for item in items:
                    if await repo.transition(item.id, QueueStatus.PENDING, QueueStatus.PROCESSING):
                        await repo.transition(
                            item.id,
                            QueueStatus.PROCESSING,
                            QueueStatus.FAILED,
                            error_message=NO_RUN_MESSAGE,
                        )
                await session.commit()
                logger.warning(f"{NO_RUN_MESSAGE}: {subject_id}")
                return None

            if run.status == RunStatus.COMPLETED:
                await run_repo.transition(run.id, RunStatus.COMPLETED, RunStatus.GENERATING)
                logger.info(f"Reopened completed run {run.id} for new queue items")

            definitions_repo = DefinitionRepo(session)
            definitions = {
                d.id: d for d in await definitions_repo.get_many([i.definition_id for i in items])
            }
            names = await definitions_repo.names_by_id()
            codex_repo = CodexRepo(session)
            for item in items:
                if not await repo.transition(
                    item.id, QueueStatus.PENDING, QueueStatus.PROCESSING, run_id=run.id
                ):
                    continue
                if await codex_repo.get_for_definition(run.id, item.definition_id):
                    continue
                definition = definitions.get(item.definition_id)
                if definition is None:
                    await repo.transition(
                        item.id,
                        QueueStatus.PROCESSING,
                        QueueStatus.FAILED,
                        error_message=f"Codex definition not found: {item.definition_id}",
                    )
                    continue
                override = None
                if item.provider_id is not None or item.model:
                    override = ProviderRef(provider_id=item.provider_id, model=item.model)
                await codex_repo.create_codex(
                    run_id=run.id,
                    definition_id=definition.id,
                    name=definition.name,
                    snapshot=definition.snapshot(
                        [names[p] for p in definition.prerequisite_ids if p in names]
                    ),
                    display_order=definition.display_order,
                    provider_override=override,
                )
            await session.commit()
        return run.id

    async def _finalize(self, run_id: UUID, items: list[QueueItem]) -> tuple[int, int]:
        completed = failed = 0
        async with db_session() as session:
            repo = QueueRepo(session)
            codex_repo = CodexRepo(session)
            for item in await repo.get_many([i.id for i in items]):
                if item.status == QueueStatus.FAILED:
                    failed += 1
                    continue
                if item.status != QueueStatus.PROCESSING:
                    continue
                codex = await codex_repo.get_for_definition(run_id, item.definition_id)
                if codex is None or not codex.status.is_terminal:
                    logger.info(f"Queue item {item.id} still processing")
                    continue
                if codex.status == CodexStatus.FAILED:
                    await repo.transition(
                        item.id,
                        QueueStatus.PROCESSING,
                        QueueStatus.FAILED,
                        error_message=codex.error_message or "Codex generation failed",
                    )
                    failed += 1
                else:
                    await repo.transition(item.id, QueueStatus.PROCESSING, QueueStatus.COMPLETED)
                    completed += 1
            await session.commit()
        return completed, failed

    async def _fail_processing(self, items: list[QueueItem], message: str) -> None:
        async with db_session() as session:
            repo = QueueRepo(session)
            for item in items:
                await repo.transition(
                    item.id, QueueStatus.PROCESSING, QueueStatus.FAILED, error_message=message
                )
            await session.commit()

    @staticmethod
    async def _load_all(repo: QueueRepo, item_ids: list[UUID]) -> list[QueueItem]:
        items = await repo.get_many(item_ids)
        found = {i.id for i in items}
        for item_id in item_ids:
            if item_id not in found:
                raise NotFoundError("queue item", item_id)
        return items

    @staticmethod
    def _validate(items: list[QueueItem], target: QueueStatus) -> None:
        for item in items:
            if not can_transition(item.status, target):
                raise IllegalTransitionError("queue item", item.status, target)

    @staticmethod
    async def _apply(repo: QueueRepo, item: QueueItem, target: QueueStatus, **fields) -> None:
        if not await repo.transition(item.id, item.status, target, **fields):
            raise IllegalTransitionError("queue item", item.status, target)
