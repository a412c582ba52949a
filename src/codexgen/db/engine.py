"""Async database engine configuration."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from codexgen.settings import get_settings

_engine: AsyncEngine | None = None

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """Take the write lock at BEGIN so concurrent writers wait instead of failing."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_async_engine() -> AsyncEngine:
    """Get or create async database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.database_url_async
        kwargs: dict = {"pool_pre_ping": True, "echo": settings.debug}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}
            _engine = create_async_engine(url, **kwargs)
            _serialize_sqlite_writers(_engine)
        else:
            kwargs.update(pool_size=5, max_overflow=10)
            _engine = create_async_engine(url, **kwargs)
    return _engine


def reset_engine() -> None:
    """Reset the engine (for testing)."""
    global _engine
    _engine = None
