"""Tests for run completion notifications."""

import json
from uuid import uuid4

import httpx

from codexgen.contracts.enums import RunStatus
from codexgen.contracts.models import Run
from codexgen.orchestration.notifications import (
    NullNotifier,
    WebhookNotifier,
    notifier_from_settings,
)


def completed_run() -> Run:
    return Run(id=uuid4(), subject_id="subject-7", status=RunStatus.COMPLETED)


class TestWebhookNotifier:
    async def test_posts_run_payload(self) -> None:
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(204)

        run = completed_run()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await WebhookNotifier("https://hooks.example/runs", client=client).run_completed(run)

        assert received == [{"runId": str(run.id), "subjectId": "subject-7", "status": "completed"}]

    async def test_http_error_is_logged_not_raised(self, caplog) -> None:
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(502))
        ) as client:
            await WebhookNotifier("https://hooks.example/runs", client=client).run_completed(
                completed_run()
            )

        assert "notification" in caplog.text


def test_notifier_from_settings() -> None:
    assert isinstance(notifier_from_settings(None), NullNotifier)
    assert isinstance(notifier_from_settings("https://hooks.example"), WebhookNotifier)
