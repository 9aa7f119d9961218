"""Device-local key-value storage adapters.

Three interchangeable backends for ``KeyValueStorage``:

- ``MemoryKeyValueStorage``: process-local dict (tests, throwaway sessions)
- ``JsonFileKeyValueStorage``: one JSON object file, replaced atomically
- ``SqliteKeyValueStorage``: a single-table SQLite database (default)

Backend I/O failures are raised as ``StoreIOError``.
"""

from __future__ import annotations

import json
import os
import sqlite3
import tempfile
from pathlib import Path

from platformdirs import user_data_dir

from todosync.errors import StoreIOError
from todosync.repositories import KeyValueStorage

_APP_NAME = "todosync"

CREATE_KV_TABLE = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


def default_storage_path(filename: str) -> Path:
    """Path of *filename* inside the user data directory."""
    return Path(user_data_dir(_APP_NAME)) / filename


class MemoryKeyValueStorage(KeyValueStorage):
    """Dict-backed storage; nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStorage(KeyValueStorage):
    """All keys in one JSON object file.

    Every write rewrites the file through a temporary sibling and
    ``os.replace``, so readers see either the old or the new content.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else default_storage_path("storage.json")

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            # A corrupted file is treated as empty; values are re-written on save
            return {}
        except OSError as e:
            raise StoreIOError(f"Cannot read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreIOError(f"Cannot write {self.path}: {e}") from e

    async def get(self, key: str) -> str | None:
        return self._read().get(key)

    async def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    async def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class SqliteKeyValueStorage(KeyValueStorage):
    """Key-value pairs in a single SQLite table.

    Provides:
    - One connection per storage instance
    - WAL mode for better concurrency
    - Owner-only file permissions on first creation
    - One statement per write (atomic per key)
    """

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = str(db_path) if db_path else str(default_storage_path("storage.db"))
        self._connection: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = self._connect()
        return self._connection

    def _connect(self) -> sqlite3.Connection:
        try:
            is_memory = self.db_path == ":memory:"
            is_new_database = False
            if not is_memory:
                path = Path(self.db_path)
                path.parent.mkdir(parents=True, exist_ok=True)
                is_new_database = not path.exists()

            connection = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
            if not is_memory:
                connection.execute("PRAGMA journal_mode = WAL")
                if is_new_database:
                    os.chmod(self.db_path, 0o600)
            connection.execute(CREATE_KV_TABLE)
            connection.commit()
            return connection
        except (OSError, sqlite3.Error) as e:
            raise StoreIOError(f"Cannot open {self.db_path}: {e}") from e

    async def get(self, key: str) -> str | None:
        try:
            row = self.connection.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreIOError(f"Cannot read key {key!r}: {e}") from e
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        try:
            with self.connection:
                self.connection.execute(
                    "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        except sqlite3.Error as e:
            raise StoreIOError(f"Cannot write key {key!r}: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            with self.connection:
                self.connection.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StoreIOError(f"Cannot remove key {key!r}: {e}") from e

    def close(self) -> None:
        """Close the underlying connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
