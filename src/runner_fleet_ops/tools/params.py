"""Input validation shared by the tool implementations."""

from __future__ import annotations

from datetime import datetime

from runner_fleet_ops.core.time_window import parse_iso_dt

MAX_DAYS = 366
MAX_RECENT = 100


def parse_days(days: int | None, *, default: int) -> int:
    """Validate a lookback in days (``None`` means ``default``)."""
    if days is None:
        return default
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValueError("days must be an integer")
    if days < 1:
        raise ValueError("days must be >= 1")
    if days > MAX_DAYS:
        raise ValueError(f"days must be <= {MAX_DAYS}")
    return days


def parse_recent_limit(limit: int | None, *, default: int) -> int:
    if limit is None:
        return default
    if limit < 0:
        raise ValueError("recent_limit must be >= 0")
    return min(limit, MAX_RECENT)


def parse_retention(value: float | None, *, name: str, default: float) -> float:
    if value is None:
        return default
    if value < 0:
        raise ValueError(f"{name} must be >= 0")
    return float(value)


def parse_now(now: str | None) -> datetime | None:
    """Parse an optional ISO-8601 reference time (UTC assumed when tz is omitted)."""
    if not now:
        return None
    try:
        return parse_iso_dt(now)
    except ValueError as e:
        raise ValueError(f"now must be an ISO-8601 datetime, got {now!r}") from e
