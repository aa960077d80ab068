"""Time-window helpers.

Converts lookback selectors into UTC ranges and day axes, and reads the
timestamp token embedded in runner log file names.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, timedelta, tzinfo

# Runner_20240115-103000-utc.log, Worker_20240115-103000-utc.log.gz
_NAME_TS_RE = re.compile(r"(?P<d>\d{8})-(?P<t>\d{6})-utc", re.IGNORECASE)


def parse_iso_dt(s: str) -> datetime:
    """Parse ISO8601 datetime. If tz is missing, assume UTC."""
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def normalize_ts(ts: datetime, *, default_tz: tzinfo = UTC) -> datetime:
    """Normalize timestamps to timezone-aware UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=default_tz)
    return ts.astimezone(UTC)


def lookback_window(days: int, *, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the [since, until) UTC range covering the trailing ``days`` calendar days.

    The window starts at midnight UTC of the first day so the day axis and
    the file selection agree.
    """
    if days < 1:
        raise ValueError("days must be >= 1")
    until = normalize_ts(now) if now is not None else datetime.now(UTC)
    first = until.date() - timedelta(days=days - 1)
    since = datetime(first.year, first.month, first.day, tzinfo=UTC)
    return since, until


def window_dates(days: int, *, today: date) -> list[date]:
    """Return ``days`` consecutive dates ending at ``today`` (oldest first)."""
    if days < 1:
        raise ValueError("days must be >= 1")
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def iter_dates(start: date, end: date) -> list[date]:
    """Return every date from start to end inclusive."""
    out: list[date] = []
    d = start
    while d <= end:
        out.append(d)
        d += timedelta(days=1)
    return out


def filename_timestamp(name: str) -> datetime | None:
    """Return the UTC timestamp embedded in a runner log file name, if any."""
    m = _NAME_TS_RE.search(name)
    if not m:
        return None
    try:
        return datetime.strptime(m.group("d") + m.group("t"), "%Y%m%d%H%M%S").replace(tzinfo=UTC)
    except ValueError:
        return None
