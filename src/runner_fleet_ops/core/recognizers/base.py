"""Recognizer interface and the shared bracket-prefix splitter."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from ..models import LogEvent

# [2024-01-15 10:30:00Z INFO JobDispatcher] free text
_PREFIX_RE = re.compile(r"^\[(?P<head>[^\]]*)\]\s?(?P<msg>.*)$")
_HEAD_TS_RE = re.compile(
    r"^(?P<ts>\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)(?:\s+|$)"
)


@dataclass(frozen=True, slots=True)
class LogLine:
    """A physical line split into its bracketed prefix and free text."""

    line_no: int
    raw: str
    message: str
    timestamp: datetime | None = None
    level: str = ""
    component: str = ""
    source: str = ""
    fallback_ts: datetime | None = None

    def event_time(self) -> tuple[datetime, bool]:
        """Return (timestamp, estimated) using the fallback when the prefix had none."""
        if self.timestamp is not None:
            return self.timestamp, False
        if self.fallback_ts is not None:
            return self.fallback_ts, True
        return datetime.now(UTC), True


class EventRecognizer(Protocol):
    """Recognizer interface: return LogEvent if the line matches, else None."""

    def match(self, line: LogLine) -> LogEvent | None:
        """Recognize a split log line."""
        ...


def parse_prefix_ts(ts_str: str) -> datetime | None:
    """Parse the prefix timestamp; naive values are UTC."""
    try:
        dt = datetime.fromisoformat(ts_str.replace(" ", "T", 1).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def split_line(
    line_no: int,
    line: str,
    *,
    source: str = "",
    fallback_ts: datetime | None = None,
) -> LogLine:
    """Split ``[<timestamp> <level> <component>] text`` into a LogLine.

    Lines without a bracketed prefix keep the whole line as message. A prefix
    whose timestamp does not parse still yields level/component.
    """
    m = _PREFIX_RE.match(line)
    if not m:
        return LogLine(
            line_no=line_no,
            raw=line,
            message=line.strip(),
            source=source,
            fallback_ts=fallback_ts,
        )

    head = m.group("head").strip()
    ts: datetime | None = None
    ts_m = _HEAD_TS_RE.match(head)
    if ts_m:
        ts = parse_prefix_ts(ts_m.group("ts"))
        head = head[ts_m.end():]
    else:
        # Unparseable timestamp token: drop it when the next token looks like a level.
        parts = head.split(None, 2)
        if len(parts) >= 2 and parts[1].isupper() and not parts[0].isupper():
            head = " ".join(parts[1:])

    parts = head.split(None, 1)
    level = parts[0].upper() if parts else ""
    component = parts[1].strip() if len(parts) > 1 else ""

    return LogLine(
        line_no=line_no,
        raw=line,
        message=m.group("msg").strip(),
        timestamp=ts,
        level=level,
        component=component,
        source=source,
        fallback_ts=fallback_ts,
    )
