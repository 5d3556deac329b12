# oubli_mem/storage/sqlite_store.py

import os
import sqlite3

from ..errors import PersistenceDecodeError, PersistenceWriteError


class SqliteStore:
    """
    SQLite-backed KeyValueStore.

    One row per key; the memory registry lives under a single fixed key.
    """

    def __init__(self, path: str = "~/.oubli_mem/memories.db") -> None:
        if path == ":memory:":
            self.path = path
        else:
            self.path = os.path.expanduser(path)
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
            """
        )
        self.conn.commit()

    def get(self, key: str) -> str | None:
        try:
            cur = self.conn.cursor()
            cur.execute("SELECT value FROM kv WHERE key = ? LIMIT 1;", (key,))
            row = cur.fetchone()
        except sqlite3.Error as e:
            raise PersistenceDecodeError(f"read of {key!r} failed: {e}") from e
        if row is None:
            return None
        return row["value"]

    def set(self, key: str, value: str) -> None:
        try:
            cur = self.conn.cursor()
            cur.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?);",
                (key, value),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceWriteError(f"write of {key!r} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            cur = self.conn.cursor()
            cur.execute("DELETE FROM kv WHERE key = ?;", (key,))
            self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceWriteError(f"delete of {key!r} failed: {e}") from e

    def close(self) -> None:
        self.conn.close()
