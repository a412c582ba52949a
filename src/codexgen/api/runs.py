"""Run trigger routes: create, orchestrate, source document, cancel, resume, retry."""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import Field

from codexgen.api.deps import get_orchestrator
from codexgen.api.schemas import Ack, ApiModel, RunResponse
from codexgen.contracts.models import ProviderRef
from codexgen.orchestration.orchestrator import RunOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/runs", tags=["runs"])


class CreateRunRequest(ApiModel):
    """Request to start a full run for a subject."""

    subject_id: str = Field(min_length=1)
    answers: dict[str, Any] = Field(default_factory=dict)
    source_document: str | None = None
    definition_ids: list[UUID] | None = None
    provider_id: UUID | None = None
    model: str | None = None
    orchestrate: bool = True


class SourceDocumentRequest(ApiModel):
    source_document: str = Field(min_length=1)
    orchestrate: bool = True


class RetryErrorsRequest(ApiModel):
    codex_id: UUID | None = None


@router.post("", response_model=RunResponse, status_code=201)
async def create_run(
    request: CreateRunRequest,
    background_tasks: BackgroundTasks,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    """Create a run with its codexes and start orchestration in the background."""
    override = None
    if request.provider_id is not None or request.model:
        override = ProviderRef(provider_id=request.provider_id, model=request.model)
    run, codexes = await orchestrator.create_run(
        request.subject_id,
        answers=request.answers,
        source_document=request.source_document,
        definition_ids=request.definition_ids,
        provider_override=override,
    )
    if request.orchestrate:
        background_tasks.add_task(orchestrator.orchestrate, run.id)
    return RunResponse.from_run(run, codexes)


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(
    run_id: UUID,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    """Get a run and the status of its codexes."""
    run, codexes = await orchestrator.get_run(run_id)
    return RunResponse.from_run(run, codexes)


@router.post("/{run_id}/orchestrate", response_model=Ack, status_code=202)
async def orchestrate_run(
    run_id: UUID,
    background_tasks: BackgroundTasks,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> Ack:
    """Run the full-run orchestration loop for an existing run."""
    await orchestrator.get_run(run_id)
    background_tasks.add_task(orchestrator.orchestrate, run_id)
    logger.info(f"Accepted orchestration request for run {run_id}")
    return Ack(run_id=run_id, message="Orchestration started")


@router.post("/{run_id}/source-document", response_model=RunResponse)
async def attach_source_document(
    run_id: UUID,
    request: SourceDocumentRequest,
    background_tasks: BackgroundTasks,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    """Attach the source document; codexes waiting on it become startable."""
    await orchestrator.attach_source_document(run_id, request.source_document)
    if request.orchestrate:
        background_tasks.add_task(orchestrator.orchestrate, run_id)
    run, codexes = await orchestrator.get_run(run_id)
    return RunResponse.from_run(run, codexes)


@router.post("/{run_id}/cancel", response_model=RunResponse)
async def cancel_run(
    run_id: UUID,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    await orchestrator.cancel_run(run_id)
    run, codexes = await orchestrator.get_run(run_id)
    return RunResponse.from_run(run, codexes)


@router.post("/{run_id}/resume", response_model=RunResponse)
async def resume_run(
    run_id: UUID,
    background_tasks: BackgroundTasks,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    """Clear cancellation and continue orchestrating in the background."""
    await orchestrator.resume_run(run_id)
    background_tasks.add_task(orchestrator.orchestrate, run_id)
    run, codexes = await orchestrator.get_run(run_id)
    return RunResponse.from_run(run, codexes)


@router.post("/{run_id}/retry-errors", response_model=Ack, status_code=202)
async def retry_errors(
    run_id: UUID,
    background_tasks: BackgroundTasks,
    request: RetryErrorsRequest | None = None,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> Ack:
    """Re-run errored sections of the run, or of one of its codexes."""
    await orchestrator.get_run(run_id)
    if request is not None and request.codex_id is not None:
        background_tasks.add_task(orchestrator.retry_error_sections, codex_id=request.codex_id)
    else:
        background_tasks.add_task(orchestrator.retry_error_sections, run_id=run_id)
    return Ack(run_id=run_id, message="Retry started")
