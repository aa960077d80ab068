"""Log line recognizers.

Each recognizer is a small rule turning a split log line into a LogEvent;
``default_recognizer`` chains them so the first match wins.
"""

from __future__ import annotations

from .base import EventRecognizer, LogLine, parse_prefix_ts, split_line
from .composite import CompositeRecognizer
from .jobs import JobCompletedRecognizer, JobStartedRecognizer
from .markers import SeverityMarkerRecognizer


def default_recognizer() -> CompositeRecognizer:
    """Default rule chain (first match wins)."""
    return CompositeRecognizer(
        recognizers=[
            JobCompletedRecognizer(),
            JobStartedRecognizer(),
            SeverityMarkerRecognizer(),
        ]
    )


__all__ = [
    "CompositeRecognizer",
    "EventRecognizer",
    "JobCompletedRecognizer",
    "JobStartedRecognizer",
    "LogLine",
    "SeverityMarkerRecognizer",
    "default_recognizer",
    "parse_prefix_ts",
    "split_line",
]
