"""Client-side id generation for local tasks."""

from __future__ import annotations

import uuid

from todosync.errors import TaskNotFoundError, TaskValidationError


def generate_local_id() -> str:
    """Return a random, collision-resistant id for a local task."""
    return str(uuid.uuid4())


def shorten_id(task_id: str, length: int = 8) -> str:
    """First *length* characters of an id, for display."""
    return task_id[:length]


def resolve_task_id(task_ids: list[str], reference: str) -> str:
    """Resolve a full id or a unique id prefix.

    Raises:
        TaskNotFoundError: No id matches
        TaskValidationError: The prefix matches more than one id
    """
    if reference in task_ids:
        return reference
    matches = [task_id for task_id in task_ids if task_id.startswith(reference)]
    if not matches:
        raise TaskNotFoundError(reference)
    if len(matches) > 1:
        raise TaskValidationError(f"Ambiguous task id {reference!r} ({len(matches)} matches)")
    return matches[0]
