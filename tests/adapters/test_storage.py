"""Unit tests for the key-value storage adapters."""

from __future__ import annotations

import os
import sqlite3
import stat
from unittest.mock import MagicMock

import pytest

from todosync.adapters.storage import (
    JsonFileKeyValueStorage,
    MemoryKeyValueStorage,
    SqliteKeyValueStorage,
)
from todosync.errors import StoreIOError

# ---------------------------------------------------------------------------
# MemoryKeyValueStorage
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_memory_storage_get_set_remove():
    storage = MemoryKeyValueStorage({"a": "1"})

    assert await storage.get("a") == "1"
    await storage.set("b", "2")
    assert await storage.get("b") == "2"
    await storage.remove("a")
    assert await storage.get("a") is None


@pytest.mark.asyncio
async def test_memory_storage_remove_missing_key_is_noop():
    storage = MemoryKeyValueStorage()
    await storage.remove("missing")
    assert await storage.get("missing") is None


# ---------------------------------------------------------------------------
# JsonFileKeyValueStorage
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_json_storage_persists_across_instances(tmp_path):
    path = tmp_path / "data" / "storage.json"
    await JsonFileKeyValueStorage(path).set("@tasks_local", "[]")

    assert await JsonFileKeyValueStorage(path).get("@tasks_local") == "[]"


@pytest.mark.asyncio
async def test_json_storage_missing_file_reads_none(tmp_path):
    storage = JsonFileKeyValueStorage(tmp_path / "absent.json")
    assert await storage.get("anything") is None


@pytest.mark.asyncio
async def test_json_storage_corrupted_file_is_treated_as_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{not json", encoding="utf-8")
    storage = JsonFileKeyValueStorage(path)

    assert await storage.get("key") is None
    await storage.set("key", "value")
    assert await storage.get("key") == "value"


@pytest.mark.asyncio
async def test_json_storage_leaves_no_temp_files(tmp_path):
    storage = JsonFileKeyValueStorage(tmp_path / "storage.json")
    await storage.set("a", "1")
    await storage.set("b", "2")
    await storage.remove("a")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["storage.json"]


@pytest.mark.asyncio
async def test_json_storage_write_failure_raises_store_io_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    # Parent "directory" is a regular file, so the write must fail
    storage = JsonFileKeyValueStorage(blocker / "storage.json")

    with pytest.raises(StoreIOError):
        await storage.set("key", "value")


# ---------------------------------------------------------------------------
# SqliteKeyValueStorage
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sqlite_storage_round_trip_and_upsert(tmp_path):
    storage = SqliteKeyValueStorage(tmp_path / "storage.db")
    await storage.set("key", "one")
    await storage.set("key", "two")

    assert await storage.get("key") == "two"
    await storage.remove("key")
    assert await storage.get("key") is None
    storage.close()


@pytest.mark.asyncio
async def test_sqlite_storage_persists_across_connections(tmp_path):
    path = tmp_path / "storage.db"
    first = SqliteKeyValueStorage(path)
    await first.set("@tasks_local", "[]")
    first.close()

    second = SqliteKeyValueStorage(path)
    assert await second.get("@tasks_local") == "[]"
    second.close()


@pytest.mark.asyncio
async def test_sqlite_storage_new_file_is_owner_only(tmp_path):
    path = tmp_path / "storage.db"
    storage = SqliteKeyValueStorage(path)
    await storage.set("k", "v")

    mode = stat.S_IMODE(os.stat(path).st_mode)
    assert mode == 0o600
    storage.close()


@pytest.mark.asyncio
async def test_sqlite_storage_in_memory():
    storage = SqliteKeyValueStorage(":memory:")
    await storage.set("k", "v")
    assert await storage.get("k") == "v"
    storage.close()


@pytest.mark.asyncio
async def test_sqlite_read_failure_raises_store_io_error():
    storage = SqliteKeyValueStorage(":memory:")
    broken = MagicMock()
    broken.execute.side_effect = sqlite3.OperationalError("disk I/O error")
    storage._connection = broken

    with pytest.raises(StoreIOError) as exc_info:
        await storage.get("k")
    assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
