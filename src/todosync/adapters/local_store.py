"""Local task store - the only store available before sign-in.

Tasks are kept as one JSON array under a reserved key of the device
key-value storage. Timestamps are ISO-8601 strings in the record.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from todosync.errors import StoreIOError
from todosync.models import Task, UserSettings
from todosync.repositories import KeyValueStorage
from todosync.utils.logger import get_logger
from todosync.utils.timeutils import from_iso, to_iso

TASKS_KEY = "@tasks_local"
SETTINGS_KEY = "@settings_local"

logger = get_logger("local_store")


def task_to_record(task: Task) -> dict[str, Any]:
    """Serialize a task to its local JSON record."""
    record: dict[str, Any] = {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "completed": task.completed,
        "priority": task.priority,
        "category": task.category,
        "dueDate": to_iso(task.due_date),
        "createdAt": to_iso(task.created_at),
        "updatedAt": to_iso(task.updated_at),
    }
    if task.synced_remote_id:
        record["syncedRemoteId"] = task.synced_remote_id
    return record


def record_to_task(record: dict[str, Any]) -> Task:
    """Parse a local JSON record back into a task."""
    return Task(
        id=str(record["id"]),
        title=record["title"],
        description=record.get("description"),
        completed=bool(record.get("completed", False)),
        priority=record.get("priority") or "medium",
        category=record.get("category") or "Other",
        due_date=from_iso(record.get("dueDate")),
        created_at=from_iso(record["createdAt"]),
        updated_at=from_iso(record["updatedAt"]),
        synced_remote_id=record.get("syncedRemoteId"),
    )


class LocalTaskStore:
    """Persists the anonymous user's tasks on the device."""

    def __init__(self, storage: KeyValueStorage, key: str = TASKS_KEY):
        """Initialize the local store.

        Args:
            storage: Device key-value storage
            key: Reserved storage key for the task record
        """
        self.storage = storage
        self.key = key

    async def load_all(self) -> list[Task]:
        """Load every stored task.

        Returns an empty list when nothing is stored or the record cannot be
        decoded. Storage read failures raise ``StoreIOError``.
        """
        raw = await self.storage.get(self.key)
        if not raw:
            return []
        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError("task record is not a list")
            return [record_to_task(record) for record in records]
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning("Discarding undecodable local task record: %s", e)
            return []

    async def save_all(self, tasks: list[Task]) -> None:
        """Overwrite the stored record with *tasks* in one storage write."""
        payload = json.dumps([task_to_record(task) for task in tasks])
        await self.storage.set(self.key, payload)
        logger.debug("Saved %d local tasks", len(tasks))

    async def clear(self) -> None:
        """Remove every local task."""
        await self.storage.remove(self.key)
        logger.debug("Cleared local tasks")


class LocalSettingsStore:
    """Device settings, used while no account is signed in."""

    def __init__(self, storage: KeyValueStorage, key: str = SETTINGS_KEY):
        self.storage = storage
        self.key = key

    async def load(self) -> UserSettings:
        """Stored settings, or defaults when absent or unreadable."""
        try:
            raw = await self.storage.get(self.key)
        except StoreIOError as e:
            logger.warning("Could not read local settings: %s", e)
            return UserSettings()
        if not raw:
            return UserSettings()
        try:
            return UserSettings.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding undecodable local settings: %s", e)
            return UserSettings()

    async def save(self, settings: UserSettings) -> None:
        await self.storage.set(self.key, settings.model_dump_json())
