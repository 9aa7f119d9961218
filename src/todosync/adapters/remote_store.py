"""Remote task store - the signed-in user's tasks in the cloud document store.

Document schema (collection ``tasks``)::

    userId       str, owner account
    title        str
    description  str, omitted when absent
    completed    bool
    priority     "high" | "medium" | "low"
    category     str
    dueDate      Timestamp or null
    createdAt    Timestamp (server-assigned on create)
    updatedAt    Timestamp (server-assigned on every write)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from todosync.errors import (
    DocumentNotFoundError,
    FailedPreconditionError,
    SubscriptionBrokenError,
)
from todosync.models import Task, TaskCreate, TaskUpdate
from todosync.repositories import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    ListenerRegistration,
    Query,
    Timestamp,
)
from todosync.utils.logger import get_logger
from todosync.utils.timeutils import ensure_utc, now_utc

TASKS_COLLECTION = "tasks"

logger = get_logger("remote_store")

OnChange = Callable[[list[Task]], None]
OnError = Callable[[SubscriptionBrokenError], None]

# TaskUpdate field -> document field
_FIELD_NAMES = {
    "title": "title",
    "description": "description",
    "completed": "completed",
    "priority": "priority",
    "category": "category",
    "due_date": "dueDate",
}


def _timestamp(value: datetime | None) -> Timestamp | None:
    return Timestamp.from_datetime(value) if value is not None else None


def _as_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, Timestamp):
        return value.to_datetime()
    if isinstance(value, datetime):
        return ensure_utc(value)
    raise TypeError(f"unsupported timestamp value: {value!r}")


def document_to_task(snapshot: DocumentSnapshot) -> Task:
    """Build a task from a stored document."""
    data = snapshot.data
    created_at = _as_datetime(data.get("createdAt")) or now_utc()
    return Task(
        id=snapshot.id,
        title=data["title"],
        description=data.get("description"),
        completed=bool(data.get("completed", False)),
        priority=data.get("priority") or "medium",
        category=data.get("category") or "Other",
        due_date=_as_datetime(data.get("dueDate")),
        created_at=created_at,
        updated_at=_as_datetime(data.get("updatedAt")) or created_at,
        user_id=data.get("userId"),
    )


def _sorted_newest_first(tasks: list[Task]) -> list[Task]:
    return sorted(tasks, key=lambda task: task.created_at, reverse=True)


class TaskSubscription:
    """Live feed of one user's tasks.

    Starts with the query ordered by ``createdAt`` descending. If that
    listener fails, the same filter is re-attached without ordering (sorted
    client-side). A failure of the fallback is reported once through
    ``on_error`` and the feed stays down.
    """

    def __init__(
        self,
        store: RemoteTaskStore,
        user_id: str,
        on_change: OnChange,
        on_error: OnError | None = None,
    ):
        self.store = store
        self.user_id = user_id
        self.on_change = on_change
        self.on_error = on_error
        self.ordered = True
        self.broken = False
        self.closed = False
        self._registration: ListenerRegistration | None = None

    def _base_query(self) -> Query:
        return Query(self.store.collection).where("userId", self.user_id)

    def start(self) -> TaskSubscription:
        query = self._base_query().order("createdAt", "desc")
        try:
            registration = self.store.documents.listen(
                query, self._on_ordered_snapshot, self._on_ordered_error
            )
        except Exception as e:  # listen itself refused the query
            self._on_ordered_error(e)
            return self
        if self.ordered and not self.closed:
            self._registration = registration
        return self

    def _deliver(self, snapshots: list[DocumentSnapshot], *, sort: bool) -> None:
        if self.closed:
            return
        tasks = []
        for snapshot in snapshots:
            try:
                tasks.append(document_to_task(snapshot))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed task document %s: %s", snapshot.id, e)
        self.on_change(_sorted_newest_first(tasks) if sort else tasks)

    def _on_ordered_snapshot(self, snapshots: list[DocumentSnapshot]) -> None:
        if self.ordered:
            self._deliver(snapshots, sort=False)

    def _on_fallback_snapshot(self, snapshots: list[DocumentSnapshot]) -> None:
        self._deliver(snapshots, sort=True)

    def _on_ordered_error(self, error: Exception) -> None:
        if self.closed or not self.ordered:
            return
        logger.warning(
            "Ordered task subscription for %s failed (%s); falling back to unordered query",
            self.user_id,
            error,
        )
        self.ordered = False
        self._release()
        try:
            registration = self.store.documents.listen(
                self._base_query(), self._on_fallback_snapshot, self._on_fallback_error
            )
        except Exception as e:  # listen itself refused the fallback query
            self._on_fallback_error(e)
            return
        if not self.broken and not self.closed:
            self._registration = registration

    def _on_fallback_error(self, error: Exception) -> None:
        if self.closed or self.broken:
            return
        self.broken = True
        self._release()
        logger.error("Task subscription for %s is broken: %s", self.user_id, error)
        if self.on_error is not None:
            broken = SubscriptionBrokenError(f"Live task feed failed: {error}")
            broken.__cause__ = error
            self.on_error(broken)

    def _release(self) -> None:
        registration, self._registration = self._registration, None
        if registration is None:
            return
        try:
            registration.remove()
        except Exception as e:  # connection may already be gone
            logger.debug("Ignoring error while removing listener: %s", e)

    def unsubscribe(self) -> None:
        """Stop the feed. Safe to call any number of times."""
        if self.closed:
            return
        self.closed = True
        self._release()


class RemoteTaskStore:
    """Cloud-backed task persistence for an authenticated user."""

    def __init__(self, documents: DocumentStore, collection: str = TASKS_COLLECTION):
        """Initialize the remote store.

        Args:
            documents: Document store backend
            collection: Task collection name
        """
        self.documents = documents
        self.collection = collection

    def subscribe(
        self, user_id: str, on_change: OnChange, on_error: OnError | None = None
    ) -> TaskSubscription:
        """Attach a live feed of *user_id*'s tasks, newest first."""
        return TaskSubscription(self, user_id, on_change, on_error).start()

    async def fetch_all(self, user_id: str) -> list[Task]:
        """One-shot read of *user_id*'s tasks, newest first."""
        base = Query(self.collection).where("userId", user_id)
        try:
            snapshots = await self.documents.query(base.order("createdAt", "desc"))
            return [document_to_task(snapshot) for snapshot in snapshots]
        except FailedPreconditionError as e:
            logger.warning("Ordered task query failed (%s); using unordered query", e)
        snapshots = await self.documents.query(base)
        return _sorted_newest_first([document_to_task(snapshot) for snapshot in snapshots])

    async def create(self, task: TaskCreate, user_id: str) -> Task:
        """Create a task; the store assigns the id and both timestamps."""
        data: dict[str, Any] = {
            "userId": user_id,
            "title": task.title,
            "completed": task.completed,
            "priority": task.priority,
            "category": task.category,
            "dueDate": _timestamp(task.due_date),
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }
        if task.description is not None:
            data["description"] = task.description
        snapshot = await self.documents.add(self.collection, data)
        logger.debug("Created remote task %s", snapshot.id)
        return document_to_task(snapshot)

    async def update(self, task_id: str, changes: TaskUpdate) -> None:
        """Write only the supplied fields plus a fresh ``updatedAt``."""
        data: dict[str, Any] = {}
        for name, value in changes.changes().items():
            if name == "due_date":
                value = _timestamp(value)
            elif name == "description" and value is None:
                value = DELETE_FIELD
            data[_FIELD_NAMES[name]] = value
        data["updatedAt"] = SERVER_TIMESTAMP
        await self.documents.update(self.collection, task_id, data)

    async def delete(self, task_id: str) -> None:
        """Delete a task; deleting a missing task succeeds."""
        try:
            await self.documents.delete(self.collection, task_id)
        except DocumentNotFoundError:
            logger.debug("Remote task %s already deleted", task_id)

    def migration_document(self, task: Task, user_id: str) -> dict[str, Any]:
        """Document for uploading a local task, keeping its own timestamps."""
        data: dict[str, Any] = {
            "userId": user_id,
            "title": task.title,
            "completed": task.completed,
            "priority": task.priority,
            "category": task.category,
            "dueDate": _timestamp(task.due_date),
            "createdAt": Timestamp.from_datetime(task.created_at),
            "updatedAt": Timestamp.from_datetime(task.updated_at),
        }
        if task.description is not None:
            data["description"] = task.description
        return data

    async def commit_batch(self, documents: list[dict[str, Any]]) -> list[str]:
        """Write *documents* in one atomic batch; returns the new ids in order."""
        batch = self.documents.batch()
        ids = []
        for data in documents:
            document_id = self.documents.new_id(self.collection)
            batch.set(self.collection, document_id, data)
            ids.append(document_id)
        await batch.commit()
        return ids
