"""Unit tests for time and id helpers."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta, timezone

import pytest

from todosync.errors import TaskNotFoundError, TaskValidationError
from todosync.utils.ids import generate_local_id, resolve_task_id, shorten_id
from todosync.utils.timeutils import bump_after, ensure_utc, from_iso, to_iso


def test_to_iso_uses_milliseconds_and_z_suffix():
    value = datetime(2024, 3, 1, 12, 0, 0, 123456, tzinfo=UTC)
    assert to_iso(value) == "2024-03-01T12:00:00.123Z"
    assert to_iso(None) is None


def test_from_iso_accepts_z_and_offsets():
    assert from_iso("2024-03-01T12:00:00.000Z") == datetime(2024, 3, 1, 12, tzinfo=UTC)
    assert from_iso("2024-03-01T14:00:00+02:00") == datetime(2024, 3, 1, 12, tzinfo=UTC)
    assert from_iso("") is None


def test_ensure_utc_treats_naive_as_utc():
    assert ensure_utc(datetime(2024, 3, 1, 12)).tzinfo is UTC
    shifted = ensure_utc(datetime(2024, 3, 1, 12, tzinfo=timezone(timedelta(hours=-3))))
    assert shifted.hour == 15


def test_bump_after_is_strictly_later():
    previous = datetime(2024, 3, 1, 12, tzinfo=UTC)

    assert bump_after(previous, previous) == previous + timedelta(milliseconds=1)
    assert bump_after(previous, previous - timedelta(hours=1)) > previous
    later = previous + timedelta(seconds=5)
    assert bump_after(previous, later) == later
    assert bump_after(None, later) == later


def test_generated_ids_are_unique_uuids():
    ids = {generate_local_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(str(uuid.UUID(i)) == i for i in ids)


def test_resolve_task_id_by_prefix():
    ids = ["abc123", "abd456", "xyz"]

    assert resolve_task_id(ids, "xyz") == "xyz"
    assert resolve_task_id(ids, "abc") == "abc123"
    assert shorten_id("abcdefghij") == "abcdefgh"
    with pytest.raises(TaskValidationError):
        resolve_task_id(ids, "ab")
    with pytest.raises(TaskNotFoundError):
        resolve_task_id(ids, "q")
