"""Table metadata shared by the repositories and the Alembic migration.

Portable types only (Uuid, JSON, DateTime) so the same schema runs on
PostgreSQL in production and SQLite in tests.
"""

import sqlalchemy as sa

metadata = sa.MetaData()


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


runs = sa.Table(
    "runs",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column("subject_id", sa.Text(), nullable=False, index=True),
    sa.Column("answers", sa.JSON(), nullable=True),
    sa.Column("source_document", sa.Text(), nullable=True),
    sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
    sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("error_message", sa.Text(), nullable=True),
    *_timestamps(),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
)

codex_definitions = sa.Table(
    "codex_definitions",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column("name", sa.Text(), nullable=False, unique=True),
    sa.Column("system_prompt", sa.Text(), nullable=False, server_default=""),
    sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("depends_on_source", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("word_count_min", sa.Integer(), nullable=True),
    sa.Column("word_count_max", sa.Integer(), nullable=True),
    sa.Column("execution", sa.JSON(), nullable=False),
    *_timestamps(),
)

codex_section_templates = sa.Table(
    "codex_section_templates",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column(
        "definition_id",
        sa.Uuid(),
        sa.ForeignKey("codex_definitions.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("section_index", sa.Integer(), nullable=False),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("prompt", sa.Text(), nullable=False, server_default=""),
    sa.Column("word_count_target", sa.Integer(), nullable=True),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.UniqueConstraint("definition_id", "section_index", name="uq_section_templates_definition_index"),
)

codex_definition_prerequisites = sa.Table(
    "codex_definition_prerequisites",
    metadata,
    sa.Column(
        "definition_id",
        sa.Uuid(),
        sa.ForeignKey("codex_definitions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column(
        "prerequisite_id",
        sa.Uuid(),
        sa.ForeignKey("codex_definitions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

codexes = sa.Table(
    "codexes",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column("run_id", sa.Uuid(), sa.ForeignKey("runs.id", ondelete="CASCADE"), nullable=False),
    sa.Column(
        "definition_id",
        sa.Uuid(),
        sa.ForeignKey("codex_definitions.id", ondelete="SET NULL"),
        nullable=True,
    ),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("status", sa.Text(), nullable=False, server_default="not_started"),
    sa.Column("total_sections", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("completed_sections", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("snapshot", sa.JSON(), nullable=True),
    sa.Column("provider_override", sa.JSON(), nullable=True),
    sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("error_message", sa.Text(), nullable=True),
    *_timestamps(),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.UniqueConstraint("run_id", "definition_id", name="uq_codexes_run_definition"),
    sa.Index("ix_codexes_run_status", "run_id", "status"),
)

codex_sections = sa.Table(
    "codex_sections",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column(
        "codex_id", sa.Uuid(), sa.ForeignKey("codexes.id", ondelete="CASCADE"), nullable=False
    ),
    sa.Column("section_index", sa.Integer(), nullable=False),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
    sa.Column("content", sa.Text(), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("retries", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("regeneration_count", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("last_regenerated_at", sa.DateTime(timezone=True), nullable=True),
    *_timestamps(),
    sa.UniqueConstraint("codex_id", "section_index", name="uq_codex_sections_codex_index"),
)

generation_queue = sa.Table(
    "generation_queue",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column("subject_id", sa.Text(), nullable=False),
    sa.Column(
        "definition_id",
        sa.Uuid(),
        sa.ForeignKey("codex_definitions.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("run_id", sa.Uuid(), sa.ForeignKey("runs.id", ondelete="SET NULL"), nullable=True),
    sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
    sa.Column("provider_id", sa.Uuid(), nullable=True),
    sa.Column("model", sa.Text(), nullable=True),
    sa.Column("batch_id", sa.Uuid(), nullable=True),
    sa.Column("triggered_by", sa.Text(), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Index("ix_generation_queue_status", "status"),
)

usage_records = sa.Table(
    "usage_records",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column("run_id", sa.Uuid(), nullable=True),
    sa.Column("codex_id", sa.Uuid(), nullable=True),
    sa.Column("function_name", sa.Text(), nullable=False),
    sa.Column("provider", sa.Text(), nullable=False),
    sa.Column("model", sa.Text(), nullable=False),
    sa.Column("prompt_tokens", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("completion_tokens", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("total_tokens", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("cost", sa.Float(), nullable=False, server_default="0"),
    sa.Column("status", sa.Text(), nullable=False),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("execution_mode", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Index("ix_usage_records_run_id", "run_id"),
)

ai_providers = sa.Table(
    "ai_providers",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("provider_code", sa.Text(), nullable=False),
    sa.Column("base_url", sa.Text(), nullable=False),
    sa.Column("default_model", sa.Text(), nullable=True),
    sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

ai_provider_keys = sa.Table(
    "ai_provider_keys",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True),
    sa.Column(
        "provider_id",
        sa.Uuid(),
        sa.ForeignKey("ai_providers.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("api_key", sa.Text(), nullable=False),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)
