"""Profile store adapters - Memory, JSON file and PostgreSQL implementations."""

from .json_file import JsonFileProfileStore
from .memory import InMemoryProfileStore
from .postgres import PostgresProfileStore, run_migrations

__all__ = ["InMemoryProfileStore", "JsonFileProfileStore", "PostgresProfileStore", "run_migrations"]
