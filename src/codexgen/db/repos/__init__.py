"""Repository classes for database access."""

from codexgen.db.repos.base import BaseRepo
from codexgen.db.repos.codex import CodexRepo
from codexgen.db.repos.definition import DefinitionRepo
from codexgen.db.repos.provider import ProviderRepo
from codexgen.db.repos.queue import QueueRepo
from codexgen.db.repos.run import RunRepo
from codexgen.db.repos.section import SectionRepo
from codexgen.db.repos.usage import UsageRepo

__all__ = [
    "BaseRepo",
    "CodexRepo",
    "DefinitionRepo",
    "ProviderRepo",
    "QueueRepo",
    "RunRepo",
    "SectionRepo",
    "UsageRepo",
]
