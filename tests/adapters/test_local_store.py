"""Unit tests for LocalTaskStore (device-local persistence)."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from conftest import make_task
from todosync.adapters.local_store import (
    SETTINGS_KEY,
    TASKS_KEY,
    LocalSettingsStore,
    LocalTaskStore,
    record_to_task,
    task_to_record,
)
from todosync.adapters.storage import MemoryKeyValueStorage
from todosync.errors import StoreIOError
from todosync.models import UserSettings

# ---------------------------------------------------------------------------
# Record format
# ---------------------------------------------------------------------------


def test_task_to_record_uses_iso_strings_and_camel_case_keys():
    task = make_task(
        description="Chapter 3",
        due_date=datetime(2024, 3, 5, tzinfo=UTC),
        priority="high",
        category="Work",
    )

    record = task_to_record(task)

    assert record == {
        "id": "t1",
        "title": "Write tests",
        "description": "Chapter 3",
        "completed": False,
        "priority": "high",
        "category": "Work",
        "dueDate": "2024-03-05T00:00:00.000Z",
        "createdAt": "2024-03-01T12:00:00.000Z",
        "updatedAt": "2024-03-01T12:00:00.000Z",
    }


def test_record_keeps_synced_remote_id_only_when_set():
    assert "syncedRemoteId" not in task_to_record(make_task())
    record = task_to_record(make_task(synced_remote_id="r1"))
    assert record["syncedRemoteId"] == "r1"
    assert record_to_task(record).synced_remote_id == "r1"


def test_record_to_task_defaults_missing_optional_fields():
    task = record_to_task(
        {
            "id": "x",
            "title": "Plain",
            "createdAt": "2024-03-01T12:00:00.000Z",
            "updatedAt": "2024-03-01T12:00:00.000Z",
        }
    )
    assert task.priority == "medium"
    assert task.category == "Other"
    assert task.due_date is None
    assert task.completed is False


# ---------------------------------------------------------------------------
# load_all / save_all / clear
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_round_trip_preserves_every_field(local_store):
    tasks = [
        make_task("a", "First", description="desc", due_date=datetime(2024, 4, 1, tzinfo=UTC)),
        make_task("b", "Second", completed=True, priority="low", category="Health"),
    ]

    await local_store.save_all(tasks)

    assert await local_store.load_all() == tasks


@pytest.mark.asyncio
async def test_load_all_returns_empty_when_nothing_stored(local_store):
    assert await local_store.load_all() == []


@pytest.mark.asyncio
async def test_load_all_returns_empty_for_undecodable_record():
    storage = MemoryKeyValueStorage({TASKS_KEY: "not json ["})
    assert await LocalTaskStore(storage).load_all() == []


@pytest.mark.asyncio
async def test_load_all_returns_empty_for_record_that_is_not_a_list():
    storage = MemoryKeyValueStorage({TASKS_KEY: json.dumps({"id": "a"})})
    assert await LocalTaskStore(storage).load_all() == []


@pytest.mark.asyncio
async def test_save_all_is_a_single_storage_write():
    storage = MemoryKeyValueStorage()
    storage.set = AsyncMock()
    store = LocalTaskStore(storage)

    await store.save_all([make_task("a"), make_task("b")])

    storage.set.assert_awaited_once()
    key, payload = storage.set.await_args.args
    assert key == TASKS_KEY
    assert [record["id"] for record in json.loads(payload)] == ["a", "b"]


@pytest.mark.asyncio
async def test_clear_removes_the_key(storage, local_store):
    await local_store.save_all([make_task()])
    await local_store.clear()

    assert await storage.get(TASKS_KEY) is None
    assert await local_store.load_all() == []


@pytest.mark.asyncio
async def test_storage_read_failure_propagates():
    storage = MemoryKeyValueStorage()
    storage.get = AsyncMock(side_effect=StoreIOError("disk gone"))

    with pytest.raises(StoreIOError):
        await LocalTaskStore(storage).load_all()


@pytest.mark.asyncio
async def test_storage_write_failure_propagates():
    storage = MemoryKeyValueStorage()
    storage.set = AsyncMock(side_effect=StoreIOError("disk full"))

    with pytest.raises(StoreIOError):
        await LocalTaskStore(storage).save_all([make_task()])


# ---------------------------------------------------------------------------
# Device settings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_settings_default_when_nothing_stored(storage):
    assert await LocalSettingsStore(storage).load() == UserSettings()


@pytest.mark.asyncio
async def test_settings_survive_a_new_store_instance(storage):
    await LocalSettingsStore(storage).save(UserSettings(theme="dark", notifications=False))

    settings = await LocalSettingsStore(storage).load()

    assert settings.theme == "dark"
    assert settings.notifications is False
    assert json.loads(await storage.get(SETTINGS_KEY))["theme"] == "dark"


@pytest.mark.asyncio
async def test_settings_do_not_touch_the_task_record(storage, local_store):
    await local_store.save_all([make_task()])

    await LocalSettingsStore(storage).save(UserSettings(theme="light"))

    assert [t.id for t in await local_store.load_all()] == ["t1"]


@pytest.mark.asyncio
async def test_undecodable_settings_fall_back_to_defaults():
    storage = MemoryKeyValueStorage({SETTINGS_KEY: '{"theme": "neon"}'})

    assert await LocalSettingsStore(storage).load() == UserSettings()


@pytest.mark.asyncio
async def test_settings_read_failure_falls_back_to_defaults():
    storage = MemoryKeyValueStorage()
    storage.get = AsyncMock(side_effect=StoreIOError("disk gone"))

    assert await LocalSettingsStore(storage).load() == UserSettings()


@pytest.mark.asyncio
async def test_settings_write_failure_propagates():
    storage = MemoryKeyValueStorage()
    storage.set = AsyncMock(side_effect=StoreIOError("disk full"))

    with pytest.raises(StoreIOError):
        await LocalSettingsStore(storage).save(UserSettings())
