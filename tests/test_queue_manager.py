"""Tests for the generation queue: enqueue, processing, cancel, retry and delete."""

from uuid import uuid4

import pytest

from codexgen.contracts.enums import CodexStatus, QueueStatus, RunStatus
from codexgen.core.errors import IllegalTransitionError, NotFoundError
from codexgen.db.repos import CodexRepo, QueueRepo
from codexgen.db.session import db_session
from codexgen.orchestration.queue_manager import NO_RUN_MESSAGE, QueueManager


@pytest.fixture
def queue(orchestrator) -> QueueManager:
    return QueueManager(orchestrator)


async def load_items(ids):
    async with db_session() as session:
        items = await QueueRepo(session).get_many(list(ids))
    return {i.id: i for i in items}


async def force_status(item_id, *path: QueueStatus, **fields) -> None:
    """Walk an item through legal transitions, e.g. pending -> processing -> completed."""
    async with db_session() as session:
        repo = QueueRepo(session)
        current = QueueStatus.PENDING
        for target in path:
            assert await repo.transition(item_id, current, target, **fields)
            current = target
        await session.commit()


class TestEnqueue:
    async def test_one_item_per_pair_with_shared_batch(self, queue, make_definition) -> None:
        a = await make_definition("A")
        b = await make_definition("B")

        items = await queue.enqueue(["s1", "s2"], [a.id, b.id], model="gpt-4.1", triggered_by="admin")

        assert len(items) == 4
        assert {(i.subject_id, i.definition_id) for i in items} == {
            ("s1", a.id),
            ("s1", b.id),
            ("s2", a.id),
            ("s2", b.id),
        }
        assert len({i.batch_id for i in items}) == 1
        assert all(i.status == QueueStatus.PENDING for i in items)
        assert all(i.triggered_by == "admin" for i in items)


class TestProcessPending:
    async def test_subject_without_run_fails(self, queue, make_definition) -> None:
        a = await make_definition("A")
        items = await queue.enqueue(["nobody"], [a.id])

        summary = await queue.process_pending()

        assert summary.processed == 1
        assert summary.failed == 1
        item = (await load_items([items[0].id]))[items[0].id]
        assert item.status == QueueStatus.FAILED
        assert item.error_message == NO_RUN_MESSAGE
        assert item.completed_at is not None

    async def test_new_codex_added_to_completed_run(
        self, queue, orchestrator, make_definition, gateway
    ) -> None:
        """Queued codexes reopen the subject's run and use the queued model."""
        await make_definition("Existing", sections=1)
        run, _ = await orchestrator.create_run("s1", answers={"name": "Ada"})
        await orchestrator.orchestrate(run.id)
        added = await make_definition("Added", sections=2)
        items = await queue.enqueue(["s1"], [added.id], model="gpt-4.1")

        summary = await queue.process_pending()

        assert summary.completed == 1
        assert summary.run_ids == [run.id]
        final, codexes = await orchestrator.get_run(run.id)
        assert final.status == RunStatus.COMPLETED
        new_codex = next(c for c in codexes if c.name == "Added")
        assert new_codex.status == CodexStatus.READY
        assert new_codex.provider_override.model == "gpt-4.1"
        assert gateway.get_call_count("gpt-4.1") == 2
        item = (await load_items([items[0].id]))[items[0].id]
        assert item.status == QueueStatus.COMPLETED
        assert item.run_id == run.id

    async def test_existing_codex_is_reused(self, queue, orchestrator, make_definition, gateway) -> None:
        a = await make_definition("A", sections=1)
        run, _ = await orchestrator.create_run("s1")
        await orchestrator.orchestrate(run.id)
        calls = gateway.get_call_count()

        await queue.enqueue(["s1"], [a.id])
        summary = await queue.process_pending()

        assert summary.completed == 1
        _, codexes = await orchestrator.get_run(run.id)
        assert len(codexes) == 1
        assert gateway.get_call_count() == calls

    async def test_failed_codex_fails_item(self, queue, orchestrator, make_definition) -> None:
        await make_definition("Base", sections=1)
        run, _ = await orchestrator.create_run("s1")
        await orchestrator.orchestrate(run.id)
        flaky = await make_definition("Flaky", sections=1)
        items = await queue.enqueue(["s1"], [flaky.id], model="broken-model")
        orchestrator.engine.gateway.fail_models.add("broken-model")

        summary = await queue.process_pending()

        assert summary.failed == 1
        item = (await load_items([items[0].id]))[items[0].id]
        assert item.status == QueueStatus.FAILED
        assert item.error_message == "No sections completed"

    async def test_nothing_pending(self, queue, database) -> None:
        summary = await queue.process_pending()
        assert summary.processed == 0


class TestCancel:
    async def test_cancel_pending(self, queue, make_definition) -> None:
        a = await make_definition("A")
        items = await queue.enqueue(["s1"], [a.id])

        cancelled = await queue.cancel([items[0].id])

        assert cancelled[0].status == QueueStatus.CANCELLED

    async def test_cancel_processing_flags_codex(self, queue, orchestrator, make_definition) -> None:
        a = await make_definition("A")
        run, codexes = await orchestrator.create_run("s1")
        items = await queue.enqueue(["s1"], [a.id])
        await force_status(items[0].id, QueueStatus.PROCESSING, run_id=run.id)

        await queue.cancel([items[0].id])

        async with db_session() as session:
            codex = await CodexRepo(session).get_by_id(codexes[0].id)
        assert codex.cancel_requested

    async def test_bulk_cancel_is_all_or_nothing(self, queue, make_definition) -> None:
        a = await make_definition("A")
        b = await make_definition("B")
        first, second = await queue.enqueue(["s1"], [a.id, b.id])
        await force_status(second.id, QueueStatus.PROCESSING, QueueStatus.COMPLETED)

        with pytest.raises(IllegalTransitionError):
            await queue.cancel([first.id, second.id])

        items = await load_items([first.id, second.id])
        assert items[first.id].status == QueueStatus.PENDING
        assert items[second.id].status == QueueStatus.COMPLETED

    async def test_unknown_item(self, queue, database) -> None:
        with pytest.raises(NotFoundError):
            await queue.cancel([uuid4()])


class TestRetryAndDelete:
    async def test_retry_clears_error(self, queue, make_definition) -> None:
        a = await make_definition("A")
        items = await queue.enqueue(["s1"], [a.id])
        await queue.process_pending()

        retried = await queue.retry([items[0].id], process=False)

        assert retried[0].status == QueueStatus.PENDING
        assert retried[0].error_message is None
        assert retried[0].completed_at is None

    async def test_completed_item_cannot_be_retried(self, queue, make_definition) -> None:
        a = await make_definition("A")
        items = await queue.enqueue(["s1"], [a.id])
        await force_status(items[0].id, QueueStatus.PROCESSING, QueueStatus.COMPLETED)

        with pytest.raises(IllegalTransitionError):
            await queue.retry([items[0].id])

    async def test_retry_all_failed_reprocesses(self, queue, orchestrator, make_definition) -> None:
        """Items that failed for lack of a run complete once the run exists."""
        a = await make_definition("A", sections=1)
        items = await queue.enqueue(["late"], [a.id])
        await queue.process_pending()
        run, _ = await orchestrator.create_run("late")

        retried = await queue.retry_all_failed()

        assert [i.id for i in retried] == [items[0].id]
        item = (await load_items([items[0].id]))[items[0].id]
        assert item.status == QueueStatus.COMPLETED
        assert item.run_id == run.id

    async def test_retry_all_failed_without_failures(self, queue, database) -> None:
        assert await queue.retry_all_failed() == []

    async def test_delete_only_terminal(self, queue, make_definition) -> None:
        a = await make_definition("A")
        b = await make_definition("B")
        pending, cancelled = await queue.enqueue(["s1"], [a.id, b.id])
        await queue.cancel([cancelled.id])

        with pytest.raises(IllegalTransitionError):
            await queue.delete([pending.id, cancelled.id])
        assert await queue.delete([cancelled.id]) == 1

        remaining = await load_items([pending.id, cancelled.id])
        assert list(remaining) == [pending.id]
