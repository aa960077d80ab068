"""Core data models for runner log ingestion and retention."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any


class EventKind(str, Enum):
    """Kinds of log lines the pipeline cares about."""

    JOB_STARTED = "job_started"
    JOB_COMPLETED = "job_completed"
    WARNING = "warning"
    ERROR = "error"


class JobOutcome(str, Enum):
    """Result reported on a job completion line."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    UNKNOWN = "Unknown"

    @classmethod
    def from_text(cls, text: str) -> JobOutcome:
        """Map the literal result token (case-sensitive) to an outcome."""
        for outcome in (cls.SUCCEEDED, cls.FAILED, cls.CANCELLED):
            if text == outcome.value:
                return outcome
        return cls.UNKNOWN


@dataclass(frozen=True, slots=True)
class LogEvent:
    """One recognized log line."""

    timestamp: datetime
    kind: EventKind
    job_name: str = ""
    outcome: JobOutcome | None = None  # only set for JOB_COMPLETED
    message: str = ""
    source: str = ""
    line_no: int = 0
    timestamp_estimated: bool = False  # True when file mtime stood in for the line timestamp


@dataclass(frozen=True, slots=True)
class JobSummary:
    """Lightweight view of a completed job for the recent-jobs list."""

    name: str
    outcome: JobOutcome
    timestamp: datetime
    duration_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "outcome": self.outcome.value,
            "timestamp": self.timestamp.isoformat(),
            "duration": self.duration_seconds,
        }


@dataclass(frozen=True, slots=True)
class AggregateMetrics:
    """Fold of a LogEvent stream over a lookback window."""

    window_start: date
    window_end: date
    total_jobs: int = 0
    successful_jobs: int = 0
    failed_jobs: int = 0
    cancelled_jobs: int = 0
    success_rate: float = 0.0
    jobs_by_day: dict[date, int] = field(default_factory=dict)
    recent_jobs: tuple[JobSummary, ...] = ()
    avg_job_duration_seconds: float = 0.0
    warning_count: int = 0
    error_count: int = 0
    in_progress_jobs: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dict (camelCase keys)."""
        return {
            "windowStart": self.window_start.isoformat(),
            "windowEnd": self.window_end.isoformat(),
            "totalJobs": self.total_jobs,
            "successfulJobs": self.successful_jobs,
            "failedJobs": self.failed_jobs,
            "cancelledJobs": self.cancelled_jobs,
            "successRate": self.success_rate,
            "jobsByDay": [{"date": d.isoformat(), "value": n} for d, n in self.jobs_by_day.items()],
            "recentJobs": [j.to_dict() for j in self.recent_jobs],
            "avgJobDurationSeconds": self.avg_job_duration_seconds,
            "warningCount": self.warning_count,
            "errorCount": self.error_count,
            "inProgressJobs": self.in_progress_jobs,
        }


@dataclass(frozen=True, slots=True)
class LogFile:
    """A log file or archive found on disk (rotation and parse candidate)."""

    path: Path
    last_modified: datetime
    size_bytes: int
    is_archive: bool
    name_timestamp: datetime | None = None  # YYYYMMDD-HHMMSS-utc token, if the name has one

    def age_days(self, now: datetime) -> float:
        return (now - self.last_modified).total_seconds() / 86400


@dataclass(frozen=True, slots=True)
class ParseWarning:
    """Per-file problem recorded instead of aborting a parse."""

    path: str
    reason: str
    skipped: bool = True  # False when part of the file was still used


@dataclass(frozen=True, slots=True)
class RotationResult:
    """Outcome of one rotation/retention pass."""

    files_scanned: int = 0
    files_compressed: int = 0
    files_deleted: int = 0
    bytes_freed: int = 0
    dry_run: bool = False
    warnings: tuple[ParseWarning, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "filesScanned": self.files_scanned,
            "filesCompressed": self.files_compressed,
            "filesDeleted": self.files_deleted,
            "bytesFreed": self.bytes_freed,
            "dryRun": self.dry_run,
            "warnings": [{"path": w.path, "reason": w.reason} for w in self.warnings],
        }
