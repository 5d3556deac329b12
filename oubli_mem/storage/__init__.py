# oubli_mem/storage/__init__.py

from .kv import InMemoryStore, KeyValueStore
from .sqlite_store import SqliteStore

__all__ = ["InMemoryStore", "KeyValueStore", "SqliteStore"]
