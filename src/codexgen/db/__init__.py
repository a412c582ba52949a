"""Database access layer."""

from codexgen.db.engine import get_async_engine
from codexgen.db.session import db_session
from codexgen.db.tables import metadata

__all__ = ["get_async_engine", "db_session", "metadata"]
