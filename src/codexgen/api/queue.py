"""Administrative queue routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import Field

from codexgen.api.deps import get_queue_manager
from codexgen.api.schemas import Ack, ApiModel, QueueItemResponse
from codexgen.orchestration.queue_manager import QueueManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue", tags=["queue"])


class EnqueueRequest(ApiModel):
    """Queue every subject x definition pair."""

    subject_ids: list[str] = Field(min_length=1)
    definition_ids: list[UUID] = Field(min_length=1)
    provider_id: UUID | None = None
    model: str | None = None
    triggered_by: str | None = None
    process: bool = True


class SelectionRequest(ApiModel):
    ids: list[UUID] = Field(min_length=1)


class DeleteResponse(ApiModel):
    deleted: int


def _items(items) -> list[QueueItemResponse]:
    return [QueueItemResponse.from_item(i) for i in items]


@router.post("", response_model=list[QueueItemResponse], status_code=201)
async def enqueue(
    request: EnqueueRequest,
    background_tasks: BackgroundTasks,
    manager: QueueManager = Depends(get_queue_manager),
) -> list[QueueItemResponse]:
    items = await manager.enqueue(
        request.subject_ids,
        request.definition_ids,
        provider_id=request.provider_id,
        model=request.model,
        triggered_by=request.triggered_by,
    )
    if request.process:
        background_tasks.add_task(manager.process_pending)
    return _items(items)


@router.post("/process", response_model=Ack, status_code=202)
async def process_pending(
    background_tasks: BackgroundTasks,
    manager: QueueManager = Depends(get_queue_manager),
) -> Ack:
    """Process pending items in the background."""
    background_tasks.add_task(manager.process_pending)
    return Ack(message="Processing pending queue items")


@router.post("/cancel", response_model=list[QueueItemResponse])
async def cancel(
    request: SelectionRequest,
    manager: QueueManager = Depends(get_queue_manager),
) -> list[QueueItemResponse]:
    return _items(await manager.cancel(request.ids))


@router.post("/retry", response_model=list[QueueItemResponse])
async def retry(
    request: SelectionRequest,
    background_tasks: BackgroundTasks,
    manager: QueueManager = Depends(get_queue_manager),
) -> list[QueueItemResponse]:
    """Reset items to pending and process them in the background."""
    items = await manager.retry(request.ids, process=False)
    background_tasks.add_task(manager.process_pending)
    return _items(items)


@router.post("/retry-failed", response_model=list[QueueItemResponse])
async def retry_failed(
    background_tasks: BackgroundTasks,
    manager: QueueManager = Depends(get_queue_manager),
) -> list[QueueItemResponse]:
    items = await manager.retry_all_failed(process=False)
    if items:
        background_tasks.add_task(manager.process_pending)
    logger.info(f"Retrying {len(items)} failed queue items")
    return _items(items)


@router.post("/delete", response_model=DeleteResponse)
async def delete(
    request: SelectionRequest,
    manager: QueueManager = Depends(get_queue_manager),
) -> DeleteResponse:
    return DeleteResponse(deleted=await manager.delete(request.ids))
