# oubli_mem/storage/kv.py

from __future__ import annotations

from typing import Protocol

from ..errors import PersistenceWriteError


class KeyValueStore(Protocol):
    """Client-local durable key-value layer the registry is written to."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


class InMemoryStore:
    """
    Dict-backed KeyValueStore.

    Used for ephemeral sessions and tests. `quota` (bytes per value) lets
    tests exercise the write-failure path.
    """

    def __init__(self, initial: dict[str, str] | None = None, quota: int | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.quota = quota
        self.writes = 0

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota is not None and len(value.encode("utf-8")) > self.quota:
            raise PersistenceWriteError(f"value for {key!r} exceeds quota of {self.quota} bytes")
        self.data[key] = value
        self.writes += 1

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def close(self) -> None:
        pass
