"""Generic warning/error markers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from ..models import EventKind, LogEvent
from .base import LogLine

_DEFAULT_LEVELS: dict[str, EventKind] = {
    "WARN": EventKind.WARNING,
    "WARNING": EventKind.WARNING,
    "ERR": EventKind.ERROR,
    "ERROR": EventKind.ERROR,
    "FATAL": EventKind.ERROR,
    "CRITICAL": EventKind.ERROR,
}

# GitHub workflow commands echoed into worker logs.
_DEFAULT_MARKERS: dict[str, EventKind] = {
    "##[warning]": EventKind.WARNING,
    "##[error]": EventKind.ERROR,
}


@dataclass(frozen=True, slots=True)
class SeverityMarkerRecognizer:
    """Emit WARNING/ERROR events from the prefix level or inline markers."""

    levels: Mapping[str, EventKind] = field(default_factory=lambda: dict(_DEFAULT_LEVELS))
    markers: Mapping[str, EventKind] = field(default_factory=lambda: dict(_DEFAULT_MARKERS))

    def _kind(self, line: LogLine) -> EventKind | None:
        if line.level:
            kind = self.levels.get(line.level)
            if kind is not None:
                return kind
        lowered = line.message.lower()
        for marker, kind in self.markers.items():
            if marker in lowered:
                return kind
        return None

    def match(self, line: LogLine) -> LogEvent | None:
        kind = self._kind(line)
        if kind is None:
            return None
        ts, estimated = line.event_time()
        return LogEvent(
            timestamp=ts,
            kind=kind,
            message=line.message,
            source=line.source,
            line_no=line.line_no,
            timestamp_estimated=estimated,
        )
