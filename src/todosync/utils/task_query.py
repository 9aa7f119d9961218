"""Filtering, sorting and statistics over a task list.

Date comparisons are made on UTC calendar days. Every helper accepts an
optional ``now`` so results are deterministic in tests.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Literal

from todosync.models import PRIORITY_ORDER, Task
from todosync.utils.timeutils import ensure_utc, now_utc

StatusFilter = Literal["all", "active", "completed", "overdue"]
SortKey = Literal["created_at", "due_date", "priority", "alphabetical"]

DUE_SOON_DAYS = 3

_EARLIEST = datetime.min.replace(tzinfo=UTC)


def is_overdue(due_date: datetime | None, now: datetime | None = None) -> bool:
    """Due on a day before today."""
    if due_date is None:
        return False
    today = ensure_utc(now or now_utc()).date()
    return ensure_utc(due_date).date() < today


def is_due_today(due_date: datetime | None, now: datetime | None = None) -> bool:
    if due_date is None:
        return False
    return ensure_utc(due_date).date() == ensure_utc(now or now_utc()).date()


def is_due_soon(due_date: datetime | None, now: datetime | None = None) -> bool:
    """Due between now and three days from now."""
    if due_date is None:
        return False
    current = ensure_utc(now or now_utc())
    return current <= ensure_utc(due_date) <= current + timedelta(days=DUE_SOON_DAYS)


def matches_search(task: Task, text: str) -> bool:
    needle = text.strip().lower()
    if not needle:
        return True
    if needle in task.title.lower():
        return True
    return bool(task.description) and needle in task.description.lower()


def filter_tasks(
    tasks: list[Task], status: StatusFilter = "all", now: datetime | None = None
) -> list[Task]:
    if status == "active":
        return [t for t in tasks if not t.completed]
    if status == "completed":
        return [t for t in tasks if t.completed]
    if status == "overdue":
        return [t for t in tasks if not t.completed and is_overdue(t.due_date, now)]
    if status == "all":
        return list(tasks)
    raise ValueError(f"Unknown status filter: {status}")


def sort_tasks(tasks: list[Task], sort: SortKey = "created_at") -> list[Task]:
    if sort == "created_at":
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)
    if sort == "due_date":
        # Undated tasks go last
        return sorted(tasks, key=lambda t: (t.due_date is None, t.due_date or _EARLIEST))
    if sort == "priority":
        return sorted(tasks, key=lambda t: PRIORITY_ORDER.get(t.priority, 0), reverse=True)
    if sort == "alphabetical":
        return sorted(tasks, key=lambda t: t.title.casefold())
    raise ValueError(f"Unknown sort key: {sort}")


def query_tasks(
    tasks: list[Task],
    status: StatusFilter = "all",
    search: str | None = None,
    sort: SortKey = "created_at",
    now: datetime | None = None,
) -> list[Task]:
    """Search, then filter by status, then sort."""
    result = list(tasks)
    if search:
        result = [t for t in result if matches_search(t, search)]
    result = filter_tasks(result, status, now)
    return sort_tasks(result, sort)


@dataclass
class TaskStatistics:
    """Summary counts for a task list."""

    total: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0
    completion_rate: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0}
    )


def compute_statistics(tasks: list[Task], now: datetime | None = None) -> TaskStatistics:
    stats = TaskStatistics(total=len(tasks))
    for task in tasks:
        if task.completed:
            stats.completed += 1
        elif is_overdue(task.due_date, now):
            stats.overdue += 1
        stats.by_category[task.category] = stats.by_category.get(task.category, 0) + 1
        if task.priority in stats.by_priority:
            stats.by_priority[task.priority] += 1
    stats.pending = stats.total - stats.completed
    if stats.total:
        # Half up, not banker's rounding
        stats.completion_rate = math.floor(stats.completed * 100 / stats.total + 0.5)
    return stats
