"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def hours_ago(hours: float, now: datetime | None = None) -> datetime:
    return (now or utc_now()) - timedelta(hours=hours)


def parse_iso(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp, assuming UTC when naive."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
