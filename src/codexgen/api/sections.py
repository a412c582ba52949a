"""Single-section generation routes."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import Field

from codexgen.api.deps import get_orchestrator
from codexgen.api.schemas import ApiModel, SectionResponse
from codexgen.orchestration.orchestrator import RunOrchestrator

router = APIRouter(prefix="/sections", tags=["sections"])


class GenerateSectionRequest(ApiModel):
    """Generate one section with caller-supplied context."""

    codex_id: UUID
    codex_name: str | None = None
    section_index: int = Field(ge=0)
    input_context: dict[str, Any] | str | None = None
    prerequisite_content: str | None = None


@router.post("/generate", response_model=SectionResponse)
async def generate_section(
    request: GenerateSectionRequest,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> SectionResponse:
    section = await orchestrator.generate_section(
        request.codex_id,
        request.section_index,
        request.input_context,
        request.prerequisite_content,
        codex_name=request.codex_name,
    )
    return SectionResponse.from_section(section)


@router.post("/{section_id}/regenerate", response_model=SectionResponse)
async def regenerate_section(
    section_id: UUID,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> SectionResponse:
    """Regenerate a section from its run's answers and prerequisite content."""
    section = await orchestrator.regenerate_section(section_id)
    return SectionResponse.from_section(section)
