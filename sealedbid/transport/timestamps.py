"""Timestamp helpers enforcing canonical ISO-8601 formatting and age checks."""

from __future__ import annotations

from datetime import datetime, timezone


class TimestampError(ValueError):
    """Raised when timestamps are malformed or outside the permitted window."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    if not value:
        raise TimestampError("timestamp missing")
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    except ValueError as exc:
        raise TimestampError("timestamp is not ISO-8601 compatible") from exc
    if dt.tzinfo is None:
        raise TimestampError("timestamp must include timezone information")
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as UTC ISO-8601 with a ``Z`` suffix."""
    if value.tzinfo is None:
        raise TimestampError("timestamp must include timezone information")
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def assert_within_age(
    timestamp: str, *, max_age_seconds: int, now: datetime | None = None
) -> datetime:
    """Validate timestamp string and ensure it is neither stale nor in the future."""
    dt = parse_timestamp(timestamp)
    ref = now or utcnow()
    delta = (ref - dt).total_seconds()
    if abs(delta) > max_age_seconds:
        raise TimestampError(
            f"timestamp age {delta:.1f}s exceeds max {max_age_seconds}s"
        )
    return dt
