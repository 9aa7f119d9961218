"""Repository/port interfaces for todosync."""

from .repository import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    AuthProvider,
    AuthStateCallback,
    DocumentSnapshot,
    DocumentStore,
    KeyValueStorage,
    ListenerRegistration,
    Query,
    Timestamp,
    Unsubscribe,
    WriteBatch,
)

__all__ = [
    "AuthProvider",
    "AuthStateCallback",
    "DELETE_FIELD",
    "DocumentSnapshot",
    "DocumentStore",
    "KeyValueStorage",
    "ListenerRegistration",
    "Query",
    "SERVER_TIMESTAMP",
    "Timestamp",
    "Unsubscribe",
    "WriteBatch",
]
