"""Pydantic v2 models for codex definitions, runs, sections, queue items and provider calls."""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from codexgen.contracts.enums import (
    CodexStatus,
    ExecutionMode,
    QueueStatus,
    RunStatus,
    SectionStatus,
    UsageStatus,
)

DEFAULT_MERGE_INSTRUCTION = (
    "Synthesize the following AI-generated responses into a single, "
    "cohesive, comprehensive answer."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseContractModel(BaseModel):
    """Base model for all contracts with common fields."""

    model_config = {"extra": "forbid", "frozen": False}


class RecordModel(BaseModel):
    """Base model for rows read back from the persistence store."""

    model_config = {"extra": "ignore", "from_attributes": True}


# --------------------------------------------------------------------------
# Execution configuration
# --------------------------------------------------------------------------


class ProviderRef(BaseContractModel):
    """Reference to a registry provider and a model name.

    Either field may be empty; resolution falls back through the registry
    and finally to the configured default provider.
    """

    provider_id: UUID | None = None
    model: str | None = None


class SingleExecution(BaseContractModel):
    """One provider call produces the content."""

    kind: Literal["single"] = "single"
    provider: ProviderRef = Field(default_factory=ProviderRef)

    @property
    def mode(self) -> ExecutionMode:
        return ExecutionMode.SINGLE


class ParallelMergeExecution(BaseContractModel):
    """N generators run concurrently, then one merge call synthesizes them."""

    kind: Literal["parallel_merge"] = "parallel_merge"
    generators: list[ProviderRef] = Field(min_length=1)
    merge: ProviderRef = Field(default_factory=ProviderRef)
    merge_instruction: str = DEFAULT_MERGE_INSTRUCTION

    @property
    def mode(self) -> ExecutionMode:
        return ExecutionMode.PARALLEL_MERGE

    @field_validator("merge_instruction")
    @classmethod
    def default_blank_instruction(cls, v: str) -> str:
        return v if v and v.strip() else DEFAULT_MERGE_INSTRUCTION


class ChainStep(BaseContractModel):
    """One refinement step of a sequential chain."""

    provider: ProviderRef = Field(default_factory=ProviderRef)
    instruction: str | None = None


class SequentialChainExecution(BaseContractModel):
    """Steps run in order; each step refines the previous step's output."""

    kind: Literal["sequential_chain"] = "sequential_chain"
    steps: list[ChainStep] = Field(min_length=1)

    @property
    def mode(self) -> ExecutionMode:
        return ExecutionMode.SEQUENTIAL_CHAIN


ExecutionConfig = Annotated[
    Union[SingleExecution, ParallelMergeExecution, SequentialChainExecution],
    Field(discriminator="kind"),
]


# --------------------------------------------------------------------------
# Definitions and frozen snapshots
# --------------------------------------------------------------------------


class SectionTemplate(BaseContractModel):
    """Template for one section of a codex definition."""

    index: int = Field(ge=0)
    name: str
    prompt: str = ""
    word_count_target: int | None = None
    is_active: bool = True


class CodexSnapshot(BaseContractModel):
    """Definition configuration frozen onto a codex when its run is created."""

    name: str
    system_prompt: str = ""
    sections: list[SectionTemplate] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    depends_on_source: bool = False
    word_count_min: int | None = None
    word_count_max: int | None = None
    execution: ExecutionConfig = Field(default_factory=SingleExecution)

    def template_for(self, index: int) -> SectionTemplate | None:
        for template in self.sections:
            if template.index == index:
                return template
        return None


class CodexDefinition(RecordModel):
    """Reusable, administrator-edited codex template."""

    id: UUID
    name: str
    system_prompt: str = ""
    display_order: int = 0
    is_active: bool = True
    depends_on_source: bool = False
    word_count_min: int | None = None
    word_count_max: int | None = None
    execution: ExecutionConfig = Field(default_factory=SingleExecution)
    sections: list[SectionTemplate] = Field(default_factory=list)
    prerequisite_ids: list[UUID] = Field(default_factory=list)

    def snapshot(self, prerequisite_names: list[str]) -> CodexSnapshot:
        """Freeze this definition for a run."""
        return CodexSnapshot(
            name=self.name,
            system_prompt=self.system_prompt,
            sections=sorted(
                (s for s in self.sections if s.is_active), key=lambda s: s.index
            ),
            prerequisites=list(prerequisite_names),
            depends_on_source=self.depends_on_source,
            word_count_min=self.word_count_min,
            word_count_max=self.word_count_max,
            execution=self.execution,
        )


# --------------------------------------------------------------------------
# Persisted entities
# --------------------------------------------------------------------------


class Run(RecordModel):
    """One subject's end-to-end generation request."""

    id: UUID
    subject_id: str
    answers: dict[str, Any] = Field(default_factory=dict)
    source_document: str | None = None
    status: RunStatus = RunStatus.PENDING
    cancel_requested: bool = False
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("answers", mode="before")
    @classmethod
    def none_answers(cls, v: Any) -> Any:
        return v or {}


class Codex(RecordModel):
    """Run-scoped instance of a codex definition."""

    id: UUID
    run_id: UUID
    definition_id: UUID | None = None
    name: str
    display_order: int = 0
    status: CodexStatus = CodexStatus.NOT_STARTED
    total_sections: int = 0
    completed_sections: int = 0
    snapshot: CodexSnapshot | None = None
    provider_override: ProviderRef | None = None
    cancel_requested: bool = False
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def prerequisites(self) -> list[str]:
        return list(self.snapshot.prerequisites) if self.snapshot else []

    @property
    def depends_on_source(self) -> bool:
        return bool(self.snapshot and self.snapshot.depends_on_source)


class Section(RecordModel):
    """One unit of generated content within a codex."""

    id: UUID
    codex_id: UUID
    section_index: int
    name: str
    status: SectionStatus = SectionStatus.PENDING
    content: str | None = None
    error_message: str | None = None
    retries: int = 0
    regeneration_count: int = 0
    last_regenerated_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class QueueItem(RecordModel):
    """Administrative request to generate one codex for one subject."""

    id: UUID
    subject_id: str
    definition_id: UUID
    run_id: UUID | None = None
    status: QueueStatus = QueueStatus.PENDING
    provider_id: UUID | None = None
    model: str | None = None
    batch_id: UUID | None = None
    triggered_by: str | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


# --------------------------------------------------------------------------
# Provider calls and usage
# --------------------------------------------------------------------------


class ProviderConfig(BaseContractModel):
    """Everything the gateway needs to call one provider/model."""

    provider_code: str
    name: str
    base_url: str
    api_key: str = Field(repr=False)
    model: str


class TokenUsage(BaseContractModel):
    """Normalized token counts for one call."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class CompletionResult(BaseContractModel):
    """Normalized response from any provider."""

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    provider: str
    model: str


class UsageRecord(BaseContractModel):
    """Immutable log line for one provider call."""

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=_utcnow)
    run_id: UUID | None = None
    codex_id: UUID | None = None
    function_name: str
    provider: str
    model: str
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0)
    status: UsageStatus = UsageStatus.SUCCESS
    error_message: str | None = None
    execution_mode: ExecutionMode | None = None


class ExecutionResult(BaseContractModel):
    """Final artifact of one execution-mode run plus its per-call usage."""

    content: str
    usage: list[UsageRecord] = Field(default_factory=list)
