"""Port definitions for todosync.

This module defines the abstract base classes (interfaces) the core talks to,
following the hexagonal architecture (Ports & Adapters) pattern:

- ``KeyValueStorage``: device-local string storage used by the local task store
- ``DocumentStore``: cloud document collection with queries, live listeners
  and atomic batches, used by the remote task store and profile service
- ``AuthProvider``: opaque authentication capabilities

Concrete adapters live in ``todosync.adapters``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from todosync.models import Identity
from todosync.utils.timeutils import ensure_utc

# ---------------------------------------------------------------------------
# Document store value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class Timestamp:
    """Native timestamp type of the document store (UTC, nanosecond precision)."""

    seconds: int
    nanos: int = 0

    @classmethod
    def from_datetime(cls, value: datetime) -> Timestamp:
        value = ensure_utc(value)
        epoch = datetime(1970, 1, 1, tzinfo=UTC)
        delta = value - epoch
        seconds = delta.days * 86400 + delta.seconds
        return cls(seconds=seconds, nanos=delta.microseconds * 1000)

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.seconds, tz=UTC).replace(
            microsecond=self.nanos // 1000
        )


class _Sentinel:
    """Write-time marker resolved by the store, never persisted itself."""

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.name}>"


SERVER_TIMESTAMP = _Sentinel("serverTimestamp")
"""Replaced by the store's commit time."""

DELETE_FIELD = _Sentinel("delete")
"""Removes the field from the stored document (update/merge writes only)."""


@dataclass(frozen=True)
class Query:
    """Equality-filtered, optionally ordered query over one collection."""

    collection: str
    filters: tuple[tuple[str, Any], ...] = ()
    order_by: tuple[str, Literal["asc", "desc"]] | None = None

    def where(self, field_name: str, value: Any) -> Query:
        return Query(self.collection, self.filters + ((field_name, value),), self.order_by)

    def order(self, field_name: str, direction: Literal["asc", "desc"] = "asc") -> Query:
        return Query(self.collection, self.filters, (field_name, direction))


@dataclass(frozen=True)
class DocumentSnapshot:
    """A document id and its data at read time."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)


SnapshotCallback = Callable[[list[DocumentSnapshot]], None]
ErrorCallback = Callable[[Exception], None]


class ListenerRegistration(ABC):
    """Handle returned by ``DocumentStore.listen``."""

    @abstractmethod
    def remove(self) -> None:
        """Stop delivering snapshots. Calling it more than once is allowed."""


class WriteBatch(ABC):
    """Accumulates writes and commits them atomically."""

    @abstractmethod
    def set(self, collection: str, document_id: str, data: dict[str, Any]) -> WriteBatch:
        """Queue a full document write."""

    @abstractmethod
    def update(self, collection: str, document_id: str, data: dict[str, Any]) -> WriteBatch:
        """Queue a partial update of an existing document."""

    @abstractmethod
    def delete(self, collection: str, document_id: str) -> WriteBatch:
        """Queue a document delete."""

    @abstractmethod
    async def commit(self) -> None:
        """Apply all queued writes, or none of them."""


class DocumentStore(ABC):
    """Abstract cloud document collection.

    Raises:
        DocumentNotFoundError: update on a missing document
        FailedPreconditionError: a query the backend cannot serve
    """

    @abstractmethod
    def new_id(self, collection: str) -> str:
        """Reserve a fresh document id (no write)."""

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> DocumentSnapshot:
        """Create a document with a store-assigned id; returns the stored data."""

    @abstractmethod
    async def get(self, collection: str, document_id: str) -> DocumentSnapshot | None:
        """Read one document, ``None`` when absent."""

    @abstractmethod
    async def set(
        self, collection: str, document_id: str, data: dict[str, Any], *, merge: bool = False
    ) -> None:
        """Create or overwrite a document (deep-merge maps when *merge*)."""

    @abstractmethod
    async def update(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        """Update fields of an existing document."""

    @abstractmethod
    async def delete(self, collection: str, document_id: str) -> None:
        """Delete a document."""

    @abstractmethod
    async def query(self, query: Query) -> list[DocumentSnapshot]:
        """Run a one-shot query."""

    @abstractmethod
    def listen(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> ListenerRegistration:
        """Attach a live listener; the initial snapshot is delivered too."""

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start an atomic write batch."""


# ---------------------------------------------------------------------------
# Device storage
# ---------------------------------------------------------------------------


class KeyValueStorage(ABC):
    """Persistent device-local key-value storage of strings."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value or ``None``."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store *value* under *key* in a single operation."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove *key*; missing keys are ignored."""


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

AuthStateCallback = Callable[[Identity | None], Awaitable[None] | None]
Unsubscribe = Callable[[], None]


class AuthProvider(ABC):
    """Opaque authentication capabilities.

    Implementations notify registered callbacks with an ``Identity`` on
    sign-in and with ``None`` on sign-out.
    """

    @abstractmethod
    def on_auth_state_changed(self, callback: AuthStateCallback) -> Unsubscribe:
        """Register *callback*; returns a function that unregisters it."""

    @property
    @abstractmethod
    def current_identity(self) -> Identity | None:
        """Identity of the signed-in user, if any."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        """Sign in with credentials."""

    @abstractmethod
    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> Identity:
        """Create an account and sign in."""

    @abstractmethod
    async def sign_out(self) -> None:
        """Sign out the current user."""
