"""Job lifecycle recognizers."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..models import EventKind, JobOutcome, LogEvent
from .base import LogLine


@dataclass(frozen=True, slots=True)
class JobCompletedRecognizer:
    """Match 'Job <name> completed with result: <Outcome>'."""

    _re = re.compile(r"\bJob (?P<name>.*?) completed with result:\s*(?P<outcome>\S*)")

    def match(self, line: LogLine) -> LogEvent | None:
        m = self._re.search(line.message)
        if not m:
            return None
        ts, estimated = line.event_time()
        return LogEvent(
            timestamp=ts,
            kind=EventKind.JOB_COMPLETED,
            job_name=m.group("name"),
            outcome=JobOutcome.from_text(m.group("outcome")),
            message=line.message,
            source=line.source,
            line_no=line.line_no,
            timestamp_estimated=estimated,
        )


@dataclass(frozen=True, slots=True)
class JobStartedRecognizer:
    """Match 'Running job: <name>'."""

    _re = re.compile(r"\bRunning job:\s*(?P<name>.*?)\s*$")

    def match(self, line: LogLine) -> LogEvent | None:
        m = self._re.search(line.message)
        if not m:
            return None
        ts, estimated = line.event_time()
        return LogEvent(
            timestamp=ts,
            kind=EventKind.JOB_STARTED,
            job_name=m.group("name"),
            message=line.message,
            source=line.source,
            line_no=line.line_no,
            timestamp_estimated=estimated,
        )
