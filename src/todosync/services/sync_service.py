"""Sign-in migration of local tasks into the remote store.

When an anonymous user signs in, every local task that was never uploaded
is written to the user's remote collection in one atomic batch. Tasks keep
their own ``createdAt``/``updatedAt``; the remote store assigns new ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from todosync.adapters.local_store import LocalTaskStore
from todosync.adapters.remote_store import RemoteTaskStore
from todosync.errors import StoreIOError, SyncError
from todosync.models import SyncConfig, Task
from todosync.services.sync_state import SyncState
from todosync.utils.logger import get_logger

DEFAULT_DEDUP_WINDOW = timedelta(seconds=60)

logger = get_logger("sync")


def is_duplicate(first: Task, second: Task, window: timedelta = DEFAULT_DEDUP_WINDOW) -> bool:
    """Same title (exact, case-sensitive) and created less than *window* apart."""
    if first.title != second.title:
        return False
    return abs(first.created_at - second.created_at) < window


def find_duplicate(
    task: Task, candidates: list[Task], window: timedelta = DEFAULT_DEDUP_WINDOW
) -> Task | None:
    """First task in *candidates* that duplicates *task*, if any."""
    for candidate in candidates:
        if is_duplicate(candidate, task, window):
            return candidate
    return None


@dataclass
class MergeResult:
    """Outcome of merging local tasks into a remote list.

    Attributes:
        merged: Remote tasks followed by the local tasks that are not duplicates
        added: Local tasks that made it into ``merged``
        conflicts: ``(local, remote)`` duplicate pairs that were dropped
    """

    merged: list[Task] = field(default_factory=list)
    added: list[Task] = field(default_factory=list)
    conflicts: list[tuple[Task, Task]] = field(default_factory=list)


def merge_tasks(
    remote_tasks: list[Task],
    local_tasks: list[Task],
    window: timedelta = DEFAULT_DEDUP_WINDOW,
) -> MergeResult:
    """Merge *local_tasks* into *remote_tasks*, dropping duplicates.

    Local tasks are only compared against remote tasks, never against each
    other.
    """
    result = MergeResult(merged=list(remote_tasks))
    for task in local_tasks:
        match = find_duplicate(task, remote_tasks, window)
        if match is None:
            result.merged.append(task)
            result.added.append(task)
        else:
            result.conflicts.append((task, match))
    return result


class SyncResult:
    """Result of a migration."""

    def __init__(self):
        """Initialize sync result."""
        self.tasks_fetched = 0
        self.tasks_uploaded = 0
        self.tasks_skipped = 0
        self.tasks_duplicates = 0

        # local id -> remote id, for uploads and duplicates
        self.remote_ids: dict[str, str] = {}

        self.success = False
        self.error: str | None = None
        self.duration: float = 0.0


class SyncService:
    """Uploads the local task snapshot when a user signs in."""

    def __init__(
        self,
        local_store: LocalTaskStore,
        remote_store: RemoteTaskStore,
        sync_state: SyncState,
        config: SyncConfig | None = None,
    ):
        """Initialize sync service.

        Args:
            local_store: Device-local task store
            remote_store: Remote task store
            sync_state: Record of already-uploaded local ids
            config: Migration settings
        """
        self.local_store = local_store
        self.remote_store = remote_store
        self.sync_state = sync_state
        self.config = config or SyncConfig()

    @property
    def dedup_window(self) -> timedelta:
        return timedelta(seconds=self.config.dedup_window_seconds)

    async def _pending(self, local_tasks: list[Task], result: SyncResult) -> list[Task]:
        pending = []
        for task in local_tasks:
            if task.synced_remote_id:
                result.remote_ids[task.id] = task.synced_remote_id
                result.tasks_skipped += 1
                continue
            remote_id = await self.sync_state.remote_id_for(task.id)
            if remote_id is not None:
                result.remote_ids[task.id] = remote_id
                result.tasks_skipped += 1
                continue
            pending.append(task)
        return pending

    async def migrate(
        self,
        local_tasks: list[Task],
        user_id: str,
        existing_remote: list[Task] | None = None,
    ) -> SyncResult:
        """Upload every not-yet-synced task in *local_tasks* to *user_id*.

        Args:
            local_tasks: Snapshot of the local store taken at sign-in
            user_id: Account receiving the tasks
            existing_remote: Remote tasks to deduplicate against. When omitted
                and ``reconcile_before_upload`` is enabled they are fetched.

        Returns:
            SyncResult with operation details

        Raises:
            SyncError: Nothing was written remotely; local data is untouched
        """
        result = SyncResult()
        start_time = datetime.now()
        result.tasks_fetched = len(local_tasks)

        try:
            await self.sync_state.load()
            pending = await self._pending(local_tasks, result)

            if pending and existing_remote is None and self.config.reconcile_before_upload:
                existing_remote = await self.remote_store.fetch_all(user_id)

            if pending and existing_remote:
                merge = merge_tasks(existing_remote, pending, self.dedup_window)
                for local, remote in merge.conflicts:
                    logger.info(
                        "Skipping local task %s: duplicates remote task %s", local.id, remote.id
                    )
                    result.remote_ids[local.id] = remote.id
                result.tasks_duplicates = len(merge.conflicts)
                pending = merge.added

            if pending:
                documents = [self.remote_store.migration_document(t, user_id) for t in pending]
                new_ids = await self.remote_store.commit_batch(documents)
                uploaded = {task.id: remote_id for task, remote_id in zip(pending, new_ids)}
                result.remote_ids.update(uploaded)
                result.tasks_uploaded = len(uploaded)
        except Exception as e:
            result.error = f"{type(e).__name__}: {e}"
            result.duration = (datetime.now() - start_time).total_seconds()
            logger.warning("Migration to %s failed: %s", user_id, result.error)
            raise SyncError(f"Could not migrate local tasks: {e}", result) from e

        if result.remote_ids:
            await self._finish_local(user_id, result.remote_ids)

        result.success = True
        result.duration = (datetime.now() - start_time).total_seconds()
        logger.info(
            "Migrated local tasks to %s: %d uploaded, %d skipped, %d duplicates",
            user_id,
            result.tasks_uploaded,
            result.tasks_skipped,
            result.tasks_duplicates,
        )
        return result

    async def _finish_local(self, user_id: str, remote_ids: dict[str, str]) -> None:
        """Drop or flag migrated tasks locally, then record the uploads.

        Either step alone keeps the tasks from being uploaded again, so a
        failure of one does not skip the other. Tasks added after the
        snapshot was taken are left alone.
        """
        try:
            current = await self.local_store.load_all()
            if self.config.clear_local_after_sync:
                remaining = [t for t in current if t.id not in remote_ids and not t.synced_remote_id]
                if remaining:
                    await self.local_store.save_all(remaining)
                else:
                    await self.local_store.clear()
            else:
                await self.local_store.save_all(
                    [
                        t.model_copy(update={"synced_remote_id": remote_ids[t.id]})
                        if t.id in remote_ids
                        else t
                        for t in current
                    ]
                )
        except StoreIOError as e:
            logger.warning("Could not update local tasks after migration: %s", e)

        try:
            await self.sync_state.record_uploads(user_id, remote_ids)
        except StoreIOError as e:
            logger.warning("Could not record uploads for %s: %s", user_id, e)
