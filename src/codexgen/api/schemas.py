"""Request/response bodies shared by the routers."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from codexgen.contracts.enums import CodexStatus, QueueStatus, RunStatus, SectionStatus
from codexgen.contracts.models import Codex, QueueItem, Run, Section


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = {"extra": "forbid", "alias_generator": to_camel, "populate_by_name": True}


class Ack(ApiModel):
    """Acknowledgement for work handed to a background task."""

    accepted: bool = True
    run_id: UUID | None = None
    message: str | None = None


class CodexSummary(ApiModel):
    id: UUID
    name: str
    display_order: int
    status: CodexStatus
    total_sections: int
    completed_sections: int
    cancel_requested: bool
    error_message: str | None = None

    @classmethod
    def from_codex(cls, codex: Codex) -> "CodexSummary":
        return cls(
            id=codex.id,
            name=codex.name,
            display_order=codex.display_order,
            status=codex.status,
            total_sections=codex.total_sections,
            completed_sections=codex.completed_sections,
            cancel_requested=codex.cancel_requested,
            error_message=codex.error_message,
        )


class RunResponse(ApiModel):
    id: UUID
    subject_id: str
    status: RunStatus
    cancel_requested: bool
    has_source_document: bool
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    codexes: list[CodexSummary] = []

    @classmethod
    def from_run(cls, run: Run, codexes: list[Codex] | None = None) -> "RunResponse":
        return cls(
            id=run.id,
            subject_id=run.subject_id,
            status=run.status,
            cancel_requested=run.cancel_requested,
            has_source_document=bool(run.source_document),
            error_message=run.error_message,
            started_at=run.started_at,
            completed_at=run.completed_at,
            codexes=[CodexSummary.from_codex(c) for c in codexes or []],
        )


class SectionResponse(ApiModel):
    id: UUID
    codex_id: UUID
    section_index: int
    name: str
    status: SectionStatus
    content: str | None = None
    error_message: str | None = None
    retries: int = 0
    regeneration_count: int = 0

    @classmethod
    def from_section(cls, section: Section) -> "SectionResponse":
        return cls(
            id=section.id,
            codex_id=section.codex_id,
            section_index=section.section_index,
            name=section.name,
            status=section.status,
            content=section.content,
            error_message=section.error_message,
            retries=section.retries,
            regeneration_count=section.regeneration_count,
        )


class QueueItemResponse(ApiModel):
    id: UUID
    subject_id: str
    definition_id: UUID
    run_id: UUID | None = None
    status: QueueStatus
    provider_id: UUID | None = None
    model: str | None = None
    batch_id: UUID | None = None
    error_message: str | None = None

    @classmethod
    def from_item(cls, item: QueueItem) -> "QueueItemResponse":
        return cls(
            id=item.id,
            subject_id=item.subject_id,
            definition_id=item.definition_id,
            run_id=item.run_id,
            status=item.status,
            provider_id=item.provider_id,
            model=item.model,
            batch_id=item.batch_id,
            error_message=item.error_message,
        )
