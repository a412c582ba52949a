"""Initial codex generation schema.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # A) runs
    op.create_table(
        "runs",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("subject_id", sa.Text(), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=True),
        sa.Column("source_document", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'generating', 'completed')", name="ck_runs_status"
        ),
    )
    op.create_index("ix_runs_subject_id", "runs", ["subject_id"])

    # B) codex definitions, section templates, prerequisite edges
    op.create_table(
        "codex_definitions",
        sa.Column("id", sa.UUID(), primary_key=True),
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

    op.create_table(
        "codex_section_templates",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column(
            "definition_id",
            sa.UUID(),
            sa.ForeignKey("codex_definitions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("section_index", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False, server_default=""),
        sa.Column("word_count_target", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint(
            "definition_id", "section_index", name="uq_section_templates_definition_index"
        ),
    )

    op.create_table(
        "codex_definition_prerequisites",
        sa.Column(
            "definition_id",
            sa.UUID(),
            sa.ForeignKey("codex_definitions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "prerequisite_id",
            sa.UUID(),
            sa.ForeignKey("codex_definitions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.CheckConstraint("definition_id <> prerequisite_id", name="ck_prerequisites_no_self"),
    )

    # C) codexes and their sections
    op.create_table(
        "codexes",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("run_id", sa.UUID(), sa.ForeignKey("runs.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "definition_id",
            sa.UUID(),
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
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("run_id", "definition_id", name="uq_codexes_run_definition"),
        sa.CheckConstraint(
            "status IN ('not_started', 'generating', 'ready', 'ready_with_errors', 'failed')",
            name="ck_codexes_status",
        ),
    )
    op.create_index("ix_codexes_run_status", "codexes", ["run_id", "status"])

    op.create_table(
        "codex_sections",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column(
            "codex_id", sa.UUID(), sa.ForeignKey("codexes.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("section_index", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("regeneration_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_regenerated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("codex_id", "section_index", name="uq_codex_sections_codex_index"),
        sa.CheckConstraint(
            "status IN ('pending', 'generating', 'completed', 'error')",
            name="ck_codex_sections_status",
        ),
    )

    # D) generation queue
    op.create_table(
        "generation_queue",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("subject_id", sa.Text(), nullable=False),
        sa.Column(
            "definition_id",
            sa.UUID(),
            sa.ForeignKey("codex_definitions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("run_id", sa.UUID(), sa.ForeignKey("runs.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("provider_id", sa.UUID(), nullable=True),
        sa.Column("model", sa.Text(), nullable=True),
        sa.Column("batch_id", sa.UUID(), nullable=True),
        sa.Column("triggered_by", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'cancelled')",
            name="ck_generation_queue_status",
        ),
    )
    op.create_index("ix_generation_queue_status", "generation_queue", ["status"])

    # E) usage ledger
    op.create_table(
        "usage_records",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("run_id", sa.UUID(), nullable=True),
        sa.Column("codex_id", sa.UUID(), nullable=True),
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
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_usage_records_run_id", "usage_records", ["run_id"])

    # F) provider registry
    op.create_table(
        "ai_providers",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("provider_code", sa.Text(), nullable=False),
        sa.Column("base_url", sa.Text(), nullable=False),
        sa.Column("default_model", sa.Text(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "ai_provider_keys",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column(
            "provider_id",
            sa.UUID(),
            sa.ForeignKey("ai_providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("api_key", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("ai_provider_keys")
    op.drop_table("ai_providers")
    op.drop_table("usage_records")
    op.drop_table("generation_queue")
    op.drop_table("codex_sections")
    op.drop_table("codexes")
    op.drop_table("codex_definition_prerequisites")
    op.drop_table("codex_section_templates")
    op.drop_table("codex_definitions")
    op.drop_table("runs")
