"""Exception hierarchy for todosync.

Store I/O errors from the remote backend are not wrapped here: they pass
through to the caller unmodified. The classes below cover the failures the
core itself detects.
"""

from __future__ import annotations


class TodoSyncError(Exception):
    """Base class for all todosync errors."""


class TaskValidationError(TodoSyncError, ValueError):
    """Task fields were rejected before reaching any store."""


class TaskNotFoundError(TodoSyncError, LookupError):
    """The task id is not present in the active task list."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class StoreIOError(TodoSyncError, OSError):
    """The device-local storage failed to read or write."""


class DocumentStoreError(TodoSyncError):
    """Base class for errors reported by a document store."""


class DocumentNotFoundError(DocumentStoreError):
    """The referenced document does not exist."""

    def __init__(self, collection: str, document_id: str):
        super().__init__(f"Document not found: {collection}/{document_id}")
        self.collection = collection
        self.document_id = document_id


class FailedPreconditionError(DocumentStoreError):
    """The store refused the query, e.g. because an index is missing."""


class SyncError(TodoSyncError):
    """The sign-in migration failed; nothing was written remotely."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class SubscriptionBrokenError(TodoSyncError):
    """Both the ordered and the unordered live query failed."""


class AuthError(TodoSyncError):
    """The auth provider rejected or failed an operation."""


class ConfigError(TodoSyncError):
    """A configuration key or value was rejected."""
