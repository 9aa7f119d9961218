"""Document store over the todosync HTTP backend.

Wire format: documents travel as JSON objects. Store timestamps are encoded
as ``{"__timestamp__": "<iso-8601>"}`` and write sentinels as
``{"__sentinel__": "serverTimestamp" | "delete"}``.

Live listeners poll their query and deliver a snapshot whenever the result
differs from the previous one.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, NoReturn

import httpx

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
from todosync.services.api.client import APIClient
from todosync.utils.logger import get_logger
from todosync.utils.timeutils import from_iso

logger = get_logger("documents.rest")

_TIMESTAMP_KEY = "__timestamp__"
_SENTINEL_KEY = "__sentinel__"


def encode_value(value: Any) -> Any:
    """Convert a document value to its JSON wire form."""
    if value is SERVER_TIMESTAMP or value is DELETE_FIELD:
        return {_SENTINEL_KEY: value.name}
    if isinstance(value, Timestamp):
        return {_TIMESTAMP_KEY: to_iso_precise(value)}
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    """Convert a JSON wire value back to a document value."""
    if isinstance(value, dict):
        if set(value) == {_TIMESTAMP_KEY}:
            return Timestamp.from_datetime(from_iso(value[_TIMESTAMP_KEY]))
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def to_iso_precise(value: Timestamp) -> str:
    """ISO string keeping microsecond precision."""
    return value.to_datetime().isoformat().replace("+00:00", "Z")


def _snapshot(payload: dict[str, Any]) -> DocumentSnapshot:
    return DocumentSnapshot(str(payload["id"]), decode_value(payload.get("data") or {}))


def _translate(error: httpx.HTTPStatusError, collection: str, document_id: str = "") -> Exception | None:
    status = error.response.status_code
    if status == 404:
        return DocumentNotFoundError(collection, document_id)
    if status == 412:
        return FailedPreconditionError(error.response.text or "precondition failed")
    return None


def _reraise(error: httpx.HTTPStatusError, collection: str, document_id: str = "") -> NoReturn:
    translated = _translate(error, collection, document_id)
    if translated is None:
        raise error
    raise translated from error


class _PollingRegistration(ListenerRegistration):
    def __init__(
        self,
        store: RestDocumentStore,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ):
        self.store = store
        self.query = query
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self._task: asyncio.Task | None = None
        self._last: list[DocumentSnapshot] | None = None

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            try:
                snapshot = await self.store.query(self.query)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # any failure ends the feed and is reported once
                logger.warning("Listener on %s failed: %s", self.query.collection, e)
                self._task = None
                self.on_error(e)
                return
            if snapshot != self._last:
                self._last = snapshot
                self.on_snapshot(snapshot)
            await asyncio.sleep(self.store.poll_interval)

    def remove(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


class _RestBatch(WriteBatch):
    def __init__(self, store: RestDocumentStore):
        self.store = store
        self._writes: list[dict[str, Any]] = []

    def _queue(self, op: str, collection: str, document_id: str, data: dict | None) -> WriteBatch:
        write: dict[str, Any] = {"op": op, "collection": collection, "id": document_id}
        if data is not None:
            write["data"] = encode_value(data)
        self._writes.append(write)
        return self

    def set(self, collection: str, document_id: str, data: dict[str, Any]) -> WriteBatch:
        return self._queue("set", collection, document_id, data)

    def update(self, collection: str, document_id: str, data: dict[str, Any]) -> WriteBatch:
        return self._queue("update", collection, document_id, data)

    def delete(self, collection: str, document_id: str) -> WriteBatch:
        return self._queue("delete", collection, document_id, None)

    async def commit(self) -> None:
        try:
            await self.store.client.post("/documents:commit", json={"writes": self._writes})
        except httpx.HTTPStatusError as e:
            _reraise(e, "batch")


class RestDocumentStore(DocumentStore):
    """Document store implementation using the HTTP backend."""

    def __init__(self, client: APIClient, *, poll_interval: float | None = None):
        """Initialize REST document store.

        Args:
            client: Configured API client
            poll_interval: Seconds between listener polls (defaults to config)
        """
        self.client = client
        self.poll_interval = poll_interval or client.config.poll_interval

    @staticmethod
    def _doc_path(collection: str, document_id: str) -> str:
        return f"/collections/{collection}/documents/{document_id}"

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    async def add(self, collection: str, data: dict[str, Any]) -> DocumentSnapshot:
        try:
            response = await self.client.post(
                f"/collections/{collection}/documents", json={"data": encode_value(data)}
            )
        except httpx.HTTPStatusError as e:
            _reraise(e, collection)
        return _snapshot(response.json())

    async def get(self, collection: str, document_id: str) -> DocumentSnapshot | None:
        try:
            response = await self.client.get(self._doc_path(collection, document_id))
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        return _snapshot(response.json())

    async def set(
        self, collection: str, document_id: str, data: dict[str, Any], *, merge: bool = False
    ) -> None:
        try:
            await self.client.put(
                self._doc_path(collection, document_id),
                json={"data": encode_value(data)},
                params={"merge": "true"} if merge else None,
            )
        except httpx.HTTPStatusError as e:
            _reraise(e, collection, document_id)

    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        try:
            await self.client.patch(
                self._doc_path(collection, document_id), json={"data": encode_value(data)}
            )
        except httpx.HTTPStatusError as e:
            _reraise(e, collection, document_id)

    async def delete(self, collection: str, document_id: str) -> None:
        try:
            await self.client.delete(self._doc_path(collection, document_id))
        except httpx.HTTPStatusError as e:
            _reraise(e, collection, document_id)

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        body: dict[str, Any] = {
            "where": [[name, encode_value(value)] for name, value in query.filters]
        }
        if query.order_by:
            body["orderBy"] = list(query.order_by)
        try:
            response = await self.client.post(f"/collections/{query.collection}:query", json=body)
        except httpx.HTTPStatusError as e:
            _reraise(e, query.collection)
        return [_snapshot(item) for item in response.json().get("documents", [])]

    def listen(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> ListenerRegistration:
        registration = _PollingRegistration(self, query, on_snapshot, on_error)
        registration.start()
        return registration

    def batch(self) -> WriteBatch:
        return _RestBatch(self)
