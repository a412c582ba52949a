"""Codex definition routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import Field
from sqlalchemy.exc import IntegrityError

from codexgen.api.schemas import ApiModel
from codexgen.contracts.models import (
    CodexDefinition,
    ExecutionConfig,
    SectionTemplate,
    SingleExecution,
)
from codexgen.core.errors import DefinitionNotFoundError
from codexgen.db.repos import DefinitionRepo
from codexgen.db.session import db_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/definitions", tags=["definitions"])


class CreateDefinitionRequest(ApiModel):
    """Request to create a codex definition with its section templates."""

    name: str = Field(min_length=1)
    system_prompt: str = ""
    display_order: int = 0
    is_active: bool = True
    depends_on_source: bool = False
    word_count_min: int | None = None
    word_count_max: int | None = None
    execution: ExecutionConfig = Field(default_factory=SingleExecution)
    sections: list[SectionTemplate] = Field(default_factory=list)
    prerequisite_ids: list[UUID] = Field(default_factory=list)


class AddPrerequisiteRequest(ApiModel):
    prerequisite_id: UUID


@router.get("", response_model=list[CodexDefinition])
async def list_definitions() -> list[CodexDefinition]:
    """Active definitions in display order."""
    async with db_session() as session:
        return await DefinitionRepo(session).list_active()


@router.post("", response_model=CodexDefinition, status_code=201)
async def create_definition(request: CreateDefinitionRequest) -> CodexDefinition:
    """Create a definition; prerequisite edges are cycle-checked."""
    async with db_session() as session:
        repo = DefinitionRepo(session)
        try:
            definition = await repo.create_definition(
                name=request.name,
                sections=request.sections,
                system_prompt=request.system_prompt,
                display_order=request.display_order,
                is_active=request.is_active,
                depends_on_source=request.depends_on_source,
                word_count_min=request.word_count_min,
                word_count_max=request.word_count_max,
                execution=request.execution,
            )
            for prerequisite_id in request.prerequisite_ids:
                await repo.add_prerequisite(definition.id, prerequisite_id)
            await session.flush()
        except IntegrityError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Codex definition {request.name!r} already exists",
            )
        await session.commit()
        created = await repo.get_by_id(definition.id)
    logger.info(f"Created codex definition {request.name}")
    return created


@router.post("/{definition_id}/prerequisites", response_model=CodexDefinition)
async def add_prerequisite(
    definition_id: UUID, request: AddPrerequisiteRequest
) -> CodexDefinition:
    """Add a prerequisite edge; 409 if it would create a cycle."""
    async with db_session() as session:
        repo = DefinitionRepo(session)
        await repo.add_prerequisite(definition_id, request.prerequisite_id)
        await session.commit()
        return await repo.get_by_id(definition_id)


@router.delete("/{definition_id}/prerequisites/{prerequisite_id}", status_code=204)
async def remove_prerequisite(definition_id: UUID, prerequisite_id: UUID) -> None:
    async with db_session() as session:
        if not await DefinitionRepo(session).remove_prerequisite(definition_id, prerequisite_id):
            raise DefinitionNotFoundError(
                f"No prerequisite {prerequisite_id} on definition {definition_id}"
            )
        await session.commit()
