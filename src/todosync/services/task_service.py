"""Task façade - the single entry point the UI uses for tasks.

Routes every operation to the store that is authoritative for the current
session mode and keeps an in-memory copy of the active task list:

- local mode: the list is loaded from the device and rewritten after each
  change
- remote mode: the list is whatever the live subscription delivered last;
  writes go to the remote store and come back through the feed

Mutations wait for any mode transition in progress, so an edit never runs
against a half-switched session. Ids of tasks uploaded at sign-in are
translated to their remote ids.
"""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import BaseModel, ValidationError

from todosync.adapters.local_store import LocalTaskStore
from todosync.adapters.remote_store import RemoteTaskStore, TaskSubscription
from todosync.errors import SubscriptionBrokenError, TaskNotFoundError, TaskValidationError
from todosync.models import Identity, SessionMode, Task, TaskCreate, TaskUpdate
from todosync.repositories import Unsubscribe
from todosync.services.mode_controller import ModeController, ModeListener
from todosync.utils.ids import generate_local_id
from todosync.utils.logger import get_logger
from todosync.utils.task_query import (
    SortKey,
    StatusFilter,
    TaskStatistics,
    compute_statistics,
    query_tasks,
)
from todosync.utils.timeutils import bump_after, now_utc

logger = get_logger("tasks")


def _validated(model: type[BaseModel], **fields: Any) -> Any:
    try:
        return model(**fields)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'task'}: {err['msg']}"
            for err in e.errors()
        )
        raise TaskValidationError(f"Invalid task: {details}") from e


class TaskService:
    """Mode-aware task operations over a cached task list."""

    def __init__(
        self,
        mode_controller: ModeController,
        local_store: LocalTaskStore,
        remote_store: RemoteTaskStore,
    ):
        """Initialize the façade.

        Args:
            mode_controller: Source of the current mode and identity
            local_store: Store used in local mode
            remote_store: Store used in remote mode
        """
        self.mode_controller = mode_controller
        self.local_store = local_store
        self.remote_store = remote_store

        self._tasks: list[Task] = []
        self._lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._subscription: TaskSubscription | None = None
        self._generation = 0
        self._feed_error: SubscriptionBrokenError | None = None
        self._unsubscribe_mode: Unsubscribe | None = None

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Follow mode changes and load the current task list."""
        if self._unsubscribe_mode is None:
            self._unsubscribe_mode = self.mode_controller.on_mode_change(self._on_mode_change)
        await self.refresh()

    async def close(self) -> None:
        if self._unsubscribe_mode is not None:
            self._unsubscribe_mode()
            self._unsubscribe_mode = None
        async with self._lock:
            self._detach()

    async def _on_mode_change(self, mode: SessionMode, identity: Identity | None) -> None:
        logger.debug("Mode changed to %s; reloading tasks", mode.value)
        await self.refresh()

    def _detach(self) -> None:
        self._generation += 1
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    async def refresh(self) -> None:
        """Reload from the authoritative store.

        In remote mode the cached list is emptied and the live subscription
        (re)attached, so tasks from the other mode are never shown.
        """
        async with self._lock:
            self._detach()
            self._ready.clear()
            self._feed_error = None

            identity = self.mode_controller.identity
            if self.mode_controller.current_mode is SessionMode.LOCAL or identity is None:
                self._tasks = await self.local_store.load_all()
                self._ready.set()
                return

            self._tasks = []
            generation = self._generation
            self._subscription = self.remote_store.subscribe(
                identity.uid,
                lambda tasks: self._on_remote_tasks(generation, tasks),
                lambda error: self._on_feed_error(generation, error),
            )

    def _on_remote_tasks(self, generation: int, tasks: list[Task]) -> None:
        if generation != self._generation:
            return
        self._tasks = list(tasks)
        self._ready.set()

    def _on_feed_error(self, generation: int, error: SubscriptionBrokenError) -> None:
        if generation != self._generation:
            return
        logger.error("Live task feed stopped: %s", error)
        self._feed_error = error
        self._ready.set()

    async def wait_until_ready(self, timeout: float | None = None) -> bool:
        """Wait for the first task list of the current mode.

        Returns False if *timeout* expired first.
        """
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except TimeoutError:
            return False
        return True

    # -- state -------------------------------------------------------------

    @property
    def feed_error(self) -> SubscriptionBrokenError | None:
        """Set when the live feed broke; cleared by ``refresh``."""
        return self._feed_error

    def list_tasks(self) -> list[Task]:
        return list(self._tasks)

    def current_mode(self) -> SessionMode:
        return self.mode_controller.current_mode

    def on_mode_change(self, listener: ModeListener) -> Unsubscribe:
        return self.mode_controller.on_mode_change(listener)

    def _find(self, task_id: str) -> Task:
        for task in self._tasks:
            if task.id == task_id:
                return task
        raise TaskNotFoundError(task_id)

    def _remote_uid(self) -> str | None:
        identity = self.mode_controller.identity
        if self.mode_controller.current_mode is SessionMode.REMOTE and identity is not None:
            return identity.uid
        return None

    def _target_id(self, task_id: str) -> str:
        if self._remote_uid() is not None:
            return self.mode_controller.migrated_id(task_id)
        return task_id

    # -- mutations ---------------------------------------------------------

    async def add_task(self, title: str, **fields: Any) -> Task:
        """Create a task in the active store.

        Raises:
            TaskValidationError: Fields were rejected; no store was touched
        """
        return await self.add_task_from(_validated(TaskCreate, title=title, **fields))

    async def add_task_from(self, data: TaskCreate) -> Task:
        async with self.mode_controller.settled(), self._lock:
            uid = self._remote_uid()
            if uid is not None:
                return await self.remote_store.create(data, uid)

            now = now_utc()
            task = Task(id=generate_local_id(), **data.model_dump(), created_at=now, updated_at=now)
            tasks = [task, *self._tasks]
            await self.local_store.save_all(tasks)
            self._tasks = tasks
            return task

    async def _save_local_change(self, task: Task, changes: dict[str, Any]) -> None:
        updated = task.model_copy(
            update={**changes, "updated_at": bump_after(task.updated_at)}
        )
        tasks = [updated if t.id == task.id else t for t in self._tasks]
        await self.local_store.save_all(tasks)
        self._tasks = tasks

    async def update_task(self, task_id: str, **changes: Any) -> None:
        """Apply a partial update.

        Only the keyword arguments given are changed; ``due_date=None``
        clears the due date.

        Raises:
            TaskValidationError: Changes were rejected; no store was touched
            TaskNotFoundError: Unknown id in local mode
        """
        update: TaskUpdate = _validated(TaskUpdate, **changes)
        async with self.mode_controller.settled(), self._lock:
            if self._remote_uid() is not None:
                await self.remote_store.update(self._target_id(task_id), update)
                return
            await self._save_local_change(self._find(task_id), update.changes())

    async def delete_task(self, task_id: str) -> None:
        """Delete a task; unknown ids are ignored."""
        async with self.mode_controller.settled(), self._lock:
            if self._remote_uid() is not None:
                await self.remote_store.delete(self._target_id(task_id))
                return
            tasks = [t for t in self._tasks if t.id != task_id]
            if len(tasks) == len(self._tasks):
                return
            await self.local_store.save_all(tasks)
            self._tasks = tasks

    async def toggle_complete(self, task_id: str) -> None:
        """Flip ``completed`` based on the cached task.

        Raises:
            TaskNotFoundError: The id is not in the current list
        """
        async with self.mode_controller.settled(), self._lock:
            task = self._find(self._target_id(task_id))
            if self._remote_uid() is not None:
                await self.remote_store.update(task.id, TaskUpdate(completed=not task.completed))
                return
            await self._save_local_change(task, {"completed": not task.completed})

    # -- views -------------------------------------------------------------

    def query(
        self,
        status: StatusFilter = "all",
        search: str | None = None,
        sort: SortKey = "created_at",
    ) -> list[Task]:
        return query_tasks(self._tasks, status=status, search=search, sort=sort)

    def statistics(self) -> TaskStatistics:
        return compute_statistics(self._tasks)
