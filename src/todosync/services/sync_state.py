"""Sync state for sign-in migrations.

Remembers which local task ids were already uploaded (and to which remote
document), plus the last successful migration per user. State is persisted
as JSON in the device key-value storage under ``@sync_state``.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from todosync.repositories import KeyValueStorage
from todosync.utils.logger import get_logger
from todosync.utils.timeutils import from_iso, now_utc, to_iso

STATE_KEY = "@sync_state"

logger = get_logger("sync_state")


class SyncState:
    """Manages sync state persistence."""

    def __init__(self, storage: KeyValueStorage, key: str = STATE_KEY):
        """Initialize sync state manager.

        Args:
            storage: Device key-value storage
            key: Storage key for the state record
        """
        self.storage = storage
        self.key = key
        self._state: dict[str, Any] = {"uploaded": {}, "last_sync": {}}
        self._loaded = False

    async def load(self) -> None:
        """Load sync state from storage."""
        raw = await self.storage.get(self.key)
        state: dict[str, Any] = {}
        if raw:
            try:
                state = json.loads(raw) or {}
            except ValueError:
                # If the record is corrupted, start fresh
                logger.warning("Sync state record is corrupted; starting fresh")
                state = {}
        if not isinstance(state, dict):
            state = {}
        state.setdefault("uploaded", {})
        state.setdefault("last_sync", {})
        self._state = state
        self._loaded = True

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    async def _save(self) -> None:
        await self.storage.set(self.key, json.dumps(self._state))

    async def is_uploaded(self, local_id: str) -> bool:
        """Whether *local_id* was already migrated."""
        await self._ensure_loaded()
        return local_id in self._state["uploaded"]

    async def remote_id_for(self, local_id: str) -> str | None:
        """Remote document id a local task was uploaded as."""
        await self._ensure_loaded()
        entry = self._state["uploaded"].get(local_id)
        return entry["remote_id"] if entry else None

    async def record_uploads(
        self, user_id: str, mapping: dict[str, str], timestamp: datetime | None = None
    ) -> None:
        """Record a successful migration of ``local id -> remote id`` pairs.

        Args:
            user_id: Account the tasks were migrated to
            mapping: Local task id to remote document id
            timestamp: Sync time. Defaults to now.
        """
        await self._ensure_loaded()
        for local_id, remote_id in mapping.items():
            self._state["uploaded"][local_id] = {"remote_id": remote_id, "user_id": user_id}
        self._state["last_sync"][user_id] = to_iso(timestamp or now_utc())
        await self._save()

    async def get_last_sync(self, user_id: str) -> datetime | None:
        """Get last migration time for a user, or None if never synced."""
        await self._ensure_loaded()
        return from_iso(self._state["last_sync"].get(user_id))

    async def clear(self) -> None:
        """Forget every recorded upload."""
        self._state = {"uploaded": {}, "last_sync": {}}
        self._loaded = True
        await self.storage.remove(self.key)
