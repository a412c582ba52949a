"""Pytest configuration and fixtures."""

import pytest

from codexgen.contracts.models import CodexDefinition, SectionTemplate
from codexgen.core.ledger import InMemoryUsageSink, PricingTable, UsageLedger
from codexgen.db.engine import get_async_engine
from codexgen.db.repos import DefinitionRepo
from codexgen.db.session import db_session, reset_session_factory
from codexgen.db.tables import metadata
from codexgen.orchestration.notifications import NullNotifier
from codexgen.orchestration.orchestrator import RunOrchestrator
from codexgen.providers.mock import MockGateway, StaticProviderResolver
from codexgen.settings import get_settings


@pytest.fixture(autouse=True)
def reset_db_state():
    """Reset database engine/session state before each test.

    This prevents event loop conflicts when running multiple async tests.
    """
    reset_session_factory()
    yield
    reset_session_factory()


@pytest.fixture
async def database(tmp_path, monkeypatch):
    """Point the async engine at a fresh SQLite file and create the schema."""
    monkeypatch.setenv("DATABASE_URL_ASYNC", f"sqlite+aiosqlite:///{tmp_path / 'codexgen.db'}")
    get_settings.cache_clear()
    reset_session_factory()
    engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()
    reset_session_factory()
    get_settings.cache_clear()


@pytest.fixture
def make_definition(database):
    """Factory creating a codex definition with N numbered section templates."""

    async def _make(
        name: str,
        sections: int = 2,
        prerequisites: list[CodexDefinition] | None = None,
        **kwargs,
    ) -> CodexDefinition:
        templates = [
            SectionTemplate(index=i, name=f"{name} part {i}", prompt=f"Write part {i} of {name}.")
            for i in range(sections)
        ]
        async with db_session() as session:
            repo = DefinitionRepo(session)
            definition = await repo.create_definition(name=name, sections=templates, **kwargs)
            for prerequisite in prerequisites or []:
                await repo.add_prerequisite(definition.id, prerequisite.id)
            await session.commit()
            return await repo.get_by_id(definition.id)

    return _make


@pytest.fixture
def gateway() -> MockGateway:
    return MockGateway()


@pytest.fixture
def usage_sink() -> InMemoryUsageSink:
    return InMemoryUsageSink()


@pytest.fixture
def ledger(usage_sink: InMemoryUsageSink) -> UsageLedger:
    return UsageLedger(PricingTable(), sinks=[usage_sink])


@pytest.fixture
def orchestrator(database, gateway: MockGateway, ledger: UsageLedger) -> RunOrchestrator:
    """Orchestrator wired to the mock gateway with fast dependency polling."""
    return RunOrchestrator(
        gateway=gateway,
        resolver=StaticProviderResolver(),
        ledger=ledger,
        notifier=NullNotifier(),
        batch_size=2,
        poll_interval_seconds=0.01,
        max_poll_attempts=3,
    )
