"""Async session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codexgen.db.engine import get_async_engine, reset_engine

_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def reset_session_factory() -> None:
    """Reset the session factory (for testing)."""
    global _async_session_factory
    reset_engine()
    _async_session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_factory


@asynccontextmanager
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Async context manager yielding an AsyncSession.

    Callers commit explicitly; an exception rolls back.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
