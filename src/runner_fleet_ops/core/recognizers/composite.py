"""Recognizer composition utilities."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from ..models import LogEvent
from .base import EventRecognizer, split_line


@dataclass(frozen=True, slots=True)
class CompositeRecognizer:
    """Try recognizers in order and return the first match."""

    recognizers: Sequence[EventRecognizer]

    def parse(
        self,
        line_no: int,
        line: str,
        *,
        source: str = "",
        fallback_ts: datetime | None = None,
    ) -> LogEvent | None:
        """Split the line once, then return the first recognizer's event."""
        if not line.strip():
            return None
        log_line = split_line(line_no, line, source=source, fallback_ts=fallback_ts)
        for r in self.recognizers:
            out = r.match(log_line)
            if out is not None:
                return out
        return None
