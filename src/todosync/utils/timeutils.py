"""Time helpers.

Business logic works with timezone-aware UTC datetimes only. Conversion to
ISO strings (local record) or store timestamps (document store) happens at
the store boundaries.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


def now_utc() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_iso(value: datetime | None) -> str | None:
    """Serialize a datetime to an ISO-8601 string with a ``Z`` suffix."""
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_iso(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix accepted) to aware UTC."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def bump_after(previous: datetime | None, candidate: datetime | None = None) -> datetime:
    """Return a timestamp strictly later than *previous*.

    Local timestamps are serialized with millisecond precision, so the
    minimum step is one millisecond.
    """
    candidate = ensure_utc(candidate or now_utc())
    if previous is None:
        return candidate
    floor = ensure_utc(previous) + timedelta(milliseconds=1)
    return candidate if candidate >= floor else floor
