"""Best-effort run completion notifications."""

import logging
from typing import Protocol

import httpx

from codexgen.contracts.models import Run

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Protocol for announcing that a run finished."""

    async def run_completed(self, run: Run) -> None:
        ...


class NullNotifier:
    """Notifier used when no webhook is configured."""

    async def run_completed(self, run: Run) -> None:
        logger.debug(f"Run {run.id} completed, no notifier configured")


class WebhookNotifier:
    """POSTs {runId, subjectId, status} to a webhook.

    Failures are logged and never propagate; a run's status does not depend
    on whether anyone heard about it.
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.url = url
        self._client = client
        self._timeout = timeout_seconds

    async def run_completed(self, run: Run) -> None:
        payload = {"runId": str(run.id), "subjectId": run.subject_id, "status": run.status.value}
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.url, json=payload)
            response.raise_for_status()
            logger.info(f"Sent completion notification for run {run.id}")
        except httpx.HTTPError as e:
            logger.warning(f"Completion notification for run {run.id} failed: {e}")


def notifier_from_settings(url: str | None) -> Notifier:
    return WebhookNotifier(url) if url else NullNotifier()
