#!/usr/bin/env python3
"""Demo runner for a full codex generation run.

Usage:
    python scripts/demo_run.py

Uses a throwaway SQLite database and the mock gateway, so no provider
credentials or PostgreSQL instance are needed.
"""

import asyncio
import logging
import os
import sys
import tempfile

from codexgen.contracts.models import (
    ChainStep,
    ParallelMergeExecution,
    ProviderRef,
    SectionTemplate,
    SequentialChainExecution,
)
from codexgen.core.ledger import InMemoryUsageSink, JsonLogUsageSink, PricingTable, UsageLedger
from codexgen.db.engine import get_async_engine
from codexgen.db.repos import DefinitionRepo, SectionRepo
from codexgen.db.session import db_session, reset_session_factory
from codexgen.db.tables import metadata
from codexgen.orchestration.orchestrator import RunOrchestrator
from codexgen.providers.mock import MockGateway, StaticProviderResolver
from codexgen.settings import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


async def create_schema() -> None:
    engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def seed_definitions() -> None:
    """Three codexes: a source-driven base, and two that build on it."""
    async with db_session() as session:
        repo = DefinitionRepo(session)
        profile = await repo.create_definition(
            name="Profile",
            system_prompt="You write concise profiles.",
            display_order=1,
            depends_on_source=True,
            sections=[
                SectionTemplate(index=0, name="Background", prompt="Summarize the background."),
                SectionTemplate(index=1, name="Goals", prompt="Describe the goals."),
            ],
        )
        strategy = await repo.create_definition(
            name="Strategy",
            system_prompt="You write strategy documents.",
            display_order=2,
            execution=ParallelMergeExecution(
                generators=[ProviderRef(model="gpt-4o"), ProviderRef(model="claude-3-5-sonnet")],
                merge=ProviderRef(model="gpt-4o"),
            ),
            sections=[
                SectionTemplate(index=0, name="Positioning", prompt="Propose a positioning."),
                SectionTemplate(index=1, name="Channels", prompt="Recommend channels."),
                SectionTemplate(index=2, name="Timeline", prompt="Draft a timeline."),
            ],
        )
        summary = await repo.create_definition(
            name="Summary",
            system_prompt="You write executive summaries.",
            display_order=3,
            execution=SequentialChainExecution(
                steps=[
                    ChainStep(provider=ProviderRef(model="gpt-4o-mini")),
                    ChainStep(
                        provider=ProviderRef(model="gpt-4o"),
                        instruction="Tighten the following draft.",
                    ),
                ]
            ),
            sections=[SectionTemplate(index=0, name="Summary", prompt="Summarize everything.")],
        )
        await repo.add_prerequisite(strategy.id, profile.id)
        await repo.add_prerequisite(summary.id, strategy.id)
        await session.commit()


async def main() -> str:
    """Run the demo: seed definitions, orchestrate a run, print the outcome."""
    db_path = os.path.join(tempfile.mkdtemp(), "codexgen-demo.db")
    os.environ["DATABASE_URL_ASYNC"] = f"sqlite+aiosqlite:///{db_path}"
    get_settings.cache_clear()
    reset_session_factory()

    await create_schema()
    await seed_definitions()

    usage = InMemoryUsageSink()
    orchestrator = RunOrchestrator(
        gateway=MockGateway(delay=0.01),
        resolver=StaticProviderResolver({}),
        ledger=UsageLedger(PricingTable(), sinks=[usage, JsonLogUsageSink()]),
        poll_interval_seconds=0.1,
        max_poll_attempts=5,
    )

    run, _ = await orchestrator.create_run(
        "demo-subject",
        answers={"company": "Acme", "audience": "developers"},
        source_document="Acme builds developer tooling for data teams.",
    )
    logger.info(f"Created run {run.id}")
    await orchestrator.orchestrate(run.id)
    run, codexes = await orchestrator.get_run(run.id)

    print("\n" + "=" * 60)
    print("RUN RESULT")
    print("=" * 60)
    print(f"Run ID:            {run.id}")
    print(f"Status:            {run.status.value}")
    for codex in codexes:
        async with db_session() as session:
            sections = await SectionRepo(session).list_for_codex(codex.id)
        print(
            f"  {codex.name:<16} {codex.status.value:<18} "
            f"{codex.completed_sections}/{codex.total_sections} sections"
        )
        for section in sections:
            preview = (section.content or section.error_message or "")[:60].replace("\n", " ")
            print(f"    [{section.section_index}] {section.name}: {preview}")
    print(f"Provider calls:    {len(usage.records)}")
    print(f"Total cost:        ${usage.total_cost(run.id):.6f}")
    print("=" * 60)

    return run.status.value


if __name__ == "__main__":
    status = asyncio.run(main())
    sys.exit(0 if status == "completed" else 1)
