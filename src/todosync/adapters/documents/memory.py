"""In-process document store.

Behaves like the cloud document collection the remote task store is written
against: store-assigned ids, server timestamps from a monotonic clock,
equality filters with optional ordering, atomic batches and live listeners
that are notified synchronously after every committed write.

``unindexed_order_fields`` lets tests reproduce a backend that rejects ordered
queries for lack of an index.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any

from todosync.errors import DocumentNotFoundError, FailedPreconditionError
from todosync.repositories import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    DocumentStore,
    ListenerRegistration,
    Query,
    Timestamp,
    WriteBatch,
)
from todosync.repositories.repository import ErrorCallback, SnapshotCallback
from todosync.utils.timeutils import now_utc


def _resolve(data: dict[str, Any], commit_time: Timestamp, *, allow_delete: bool) -> dict[str, Any]:
    resolved: dict[str, Any] = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            resolved[key] = commit_time
        elif value is DELETE_FIELD:
            if not allow_delete:
                raise ValueError(f"DELETE_FIELD is only valid in updates (field {key!r})")
            resolved[key] = DELETE_FIELD
        elif isinstance(value, dict):
            resolved[key] = _resolve(value, commit_time, allow_delete=allow_delete)
        else:
            resolved[key] = copy.deepcopy(value)
    return resolved


def _merge(target: dict[str, Any], changes: dict[str, Any], *, deep: bool) -> dict[str, Any]:
    merged = dict(target)
    for key, value in changes.items():
        if value is DELETE_FIELD:
            merged.pop(key, None)
        elif deep and isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value, deep=True)
        else:
            merged[key] = value
    return merged


def _strip_deletes(data: dict[str, Any]) -> dict[str, Any]:
    return {
        key: _strip_deletes(value) if isinstance(value, dict) else value
        for key, value in data.items()
        if value is not DELETE_FIELD
    }


def _sort_key(value: Any) -> tuple:
    # None sorts first, like the cloud store's type ordering
    return (value is not None, value)


class _Registration(ListenerRegistration):
    def __init__(
        self,
        store: InMemoryDocumentStore,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ):
        self.store = store
        self.query = query
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True
        self.last_delivered: list[DocumentSnapshot] | None = None

    def deliver(self) -> None:
        if not self.active:
            return
        try:
            snapshot = self.store._run_query(self.query)
        except FailedPreconditionError as e:
            self.fail(e)
            return
        if snapshot == self.last_delivered:
            return
        self.last_delivered = snapshot
        self.on_snapshot(copy.deepcopy(snapshot))

    def fail(self, error: Exception) -> None:
        if not self.active:
            return
        # A listener that reported an error is dead, as in the cloud SDKs
        self.active = False
        self.store._listeners.discard(self)
        self.on_error(error)

    def remove(self) -> None:
        self.active = False
        self.store._listeners.discard(self)


class _MemoryBatch(WriteBatch):
    def __init__(self, store: InMemoryDocumentStore):
        self.store = store
        self._ops: list[tuple[str, str, str, dict[str, Any] | None]] = []
        self._committed = False

    def set(self, collection: str, document_id: str, data: dict[str, Any]) -> WriteBatch:
        self._ops.append(("set", collection, document_id, data))
        return self

    def update(self, collection: str, document_id: str, data: dict[str, Any]) -> WriteBatch:
        self._ops.append(("update", collection, document_id, data))
        return self

    def delete(self, collection: str, document_id: str) -> WriteBatch:
        self._ops.append(("delete", collection, document_id, None))
        return self

    async def commit(self) -> None:
        if self._committed:
            raise ValueError("batch already committed")
        self._committed = True
        self.store._apply(self._ops)


class InMemoryDocumentStore(DocumentStore):
    """Document store held in process memory."""

    def __init__(self, *, unindexed_order_fields: set[str] | None = None):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._listeners: set[_Registration] = set()
        self._last_timestamp: Timestamp | None = None
        self.unindexed_order_fields = set(unindexed_order_fields or ())

    # -- clock -------------------------------------------------------------

    def server_now(self) -> Timestamp:
        """Commit timestamp, strictly increasing across calls."""
        current = Timestamp.from_datetime(now_utc())
        last = self._last_timestamp
        if last is not None and current <= last:
            # Microsecond steps keep the value exact through datetime conversion
            nanos = last.nanos + 1000
            current = Timestamp(last.seconds + nanos // 1_000_000_000, nanos % 1_000_000_000)
        self._last_timestamp = current
        return current

    # -- writes ------------------------------------------------------------

    def _apply(self, ops: list[tuple[str, str, str, dict[str, Any] | None]]) -> None:
        """Validate all operations first, then apply them together."""
        commit_time = self.server_now()
        staged = {name: dict(docs) for name, docs in self._collections.items()}

        for kind, collection, document_id, data in ops:
            docs = staged.setdefault(collection, {})
            if kind == "set":
                docs[document_id] = _resolve(data or {}, commit_time, allow_delete=False)
            elif kind == "merge":
                changes = _resolve(data or {}, commit_time, allow_delete=True)
                docs[document_id] = _merge(docs.get(document_id, {}), changes, deep=True)
            elif kind == "update":
                if document_id not in docs:
                    raise DocumentNotFoundError(collection, document_id)
                changes = _resolve(data or {}, commit_time, allow_delete=True)
                docs[document_id] = _merge(docs[document_id], changes, deep=False)
            elif kind == "delete":
                docs.pop(document_id, None)

        self._collections = {
            name: {doc_id: _strip_deletes(doc) for doc_id, doc in docs.items()}
            for name, docs in staged.items()
        }
        self._notify()

    def _notify(self) -> None:
        for registration in list(self._listeners):
            registration.deliver()

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    async def add(self, collection: str, data: dict[str, Any]) -> DocumentSnapshot:
        document_id = self.new_id(collection)
        self._apply([("set", collection, document_id, data)])
        return DocumentSnapshot(document_id, copy.deepcopy(self._collections[collection][document_id]))

    async def get(self, collection: str, document_id: str) -> DocumentSnapshot | None:
        data = self._collections.get(collection, {}).get(document_id)
        if data is None:
            return None
        return DocumentSnapshot(document_id, copy.deepcopy(data))

    async def set(
        self, collection: str, document_id: str, data: dict[str, Any], *, merge: bool = False
    ) -> None:
        self._apply([("merge" if merge else "set", collection, document_id, data)])

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        self._apply([("update", collection, document_id, data)])

    async def delete(self, collection: str, document_id: str) -> None:
        self._apply([("delete", collection, document_id, None)])

    def batch(self) -> WriteBatch:
        return _MemoryBatch(self)

    # -- reads -------------------------------------------------------------

    def _run_query(self, query: Query) -> list[DocumentSnapshot]:
        if query.order_by and query.order_by[0] in self.unindexed_order_fields:
            raise FailedPreconditionError(
                f"The query requires an index on {query.collection}.{query.order_by[0]}"
            )
        docs = self._collections.get(query.collection, {})
        matches = [
            DocumentSnapshot(doc_id, data)
            for doc_id, data in docs.items()
            if all(data.get(name) == value for name, value in query.filters)
        ]
        if query.order_by:
            name, direction = query.order_by
            matches.sort(key=lambda snap: _sort_key(snap.data.get(name)), reverse=direction == "desc")
        return matches

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        return copy.deepcopy(self._run_query(query))

    def listen(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> ListenerRegistration:
        registration = _Registration(self, query, on_snapshot, on_error)
        self._listeners.add(registration)
        registration.deliver()
        return registration

    def break_listeners(self, error: Exception) -> None:
        """Report *error* to every live listener (simulates a dropped connection)."""
        for registration in list(self._listeners):
            registration.fail(error)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
