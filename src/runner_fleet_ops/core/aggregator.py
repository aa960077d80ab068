"""Fold LogEvent streams into AggregateMetrics."""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Iterable
from datetime import UTC, date, datetime, tzinfo

from .config import DurationPairing
from .models import AggregateMetrics, EventKind, JobOutcome, JobSummary, LogEvent
from .time_window import iter_dates


class MetricsAggregator:
    """Incremental fold over job events for one lookback window.

    ``jobs_by_day`` always covers ``window_start..window_end`` (zero-filled).
    Events dated outside the window are ignored, except events whose
    timestamp was estimated from the file mtime; those add their own day.
    """

    def __init__(
        self,
        window_start: date,
        window_end: date,
        *,
        recent_limit: int = 10,
        pairing: DurationPairing = DurationPairing.LAST_START_WINS,
        report_tz: tzinfo = UTC,
    ) -> None:
        if window_end < window_start:
            raise ValueError("window_end must be >= window_start")
        if recent_limit < 0:
            raise ValueError("recent_limit must be >= 0")
        self.window_start = window_start
        self.window_end = window_end
        self.recent_limit = recent_limit
        self.pairing = pairing
        self.report_tz = report_tz

        self._total = 0
        self._succeeded = 0
        self._failed = 0
        self._cancelled = 0
        self._warnings = 0
        self._errors = 0
        self._by_day: dict[date, int] = {d: 0 for d in iter_dates(window_start, window_end)}
        self._open_starts: dict[str, datetime] = {}
        self._duration_count = 0
        self._duration_mean = 0.0
        # min-heap of (timestamp, seq, summary); the root is the oldest kept job
        self._recent: list[tuple[datetime, int, JobSummary]] = []
        self._seq = itertools.count()

    @classmethod
    def for_days(
        cls,
        days: int,
        *,
        today: date,
        recent_limit: int = 10,
        pairing: DurationPairing = DurationPairing.LAST_START_WINS,
        report_tz: tzinfo = UTC,
    ) -> MetricsAggregator:
        """Aggregator whose window is the ``days`` calendar days ending ``today``."""
        start = date.fromordinal(today.toordinal() - (days - 1))
        return cls(start, today, recent_limit=recent_limit, pairing=pairing, report_tz=report_tz)

    def _day(self, ts: datetime) -> date:
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        return ts.astimezone(self.report_tz).date()

    def _in_window(self, event: LogEvent) -> bool:
        if event.timestamp_estimated:
            return True
        return self.window_start <= self._day(event.timestamp) <= self.window_end

    def _record_start(self, event: LogEvent) -> None:
        if self.pairing is DurationPairing.FIRST_START_WINS and event.job_name in self._open_starts:
            return
        self._open_starts[event.job_name] = event.timestamp

    def _pair_duration(self, event: LogEvent) -> float | None:
        started = self._open_starts.pop(event.job_name, None)
        if started is None:
            return None
        seconds = (event.timestamp - started).total_seconds()
        if seconds < 0:
            return None
        self._duration_count += 1
        self._duration_mean += (seconds - self._duration_mean) / self._duration_count
        return seconds

    def _remember(self, summary: JobSummary) -> None:
        if self.recent_limit == 0:
            return
        item = (summary.timestamp, next(self._seq), summary)
        if len(self._recent) < self.recent_limit:
            heapq.heappush(self._recent, item)
        elif item[:2] > self._recent[0][:2]:
            heapq.heapreplace(self._recent, item)

    def add(self, event: LogEvent) -> None:
        """Fold one event."""
        if not self._in_window(event):
            return
        if event.kind is EventKind.JOB_STARTED:
            self._record_start(event)
            return
        if event.kind is EventKind.WARNING:
            self._warnings += 1
            return
        if event.kind is EventKind.ERROR:
            self._errors += 1
            return

        outcome = event.outcome or JobOutcome.UNKNOWN
        self._total += 1
        if outcome is JobOutcome.SUCCEEDED:
            self._succeeded += 1
        elif outcome is JobOutcome.FAILED:
            self._failed += 1
        elif outcome is JobOutcome.CANCELLED:
            self._cancelled += 1

        day = self._day(event.timestamp)
        self._by_day[day] = self._by_day.get(day, 0) + 1

        duration = self._pair_duration(event)
        self._remember(
            JobSummary(
                name=event.job_name,
                outcome=outcome,
                timestamp=event.timestamp,
                duration_seconds=duration,
            )
        )

    def extend(self, events: Iterable[LogEvent]) -> None:
        for event in events:
            self.add(event)

    def result(self) -> AggregateMetrics:
        """Return the metrics folded so far."""
        rate = self._succeeded / self._total if self._total > 0 else 0.0
        recent = tuple(
            summary
            for _, _, summary in sorted(self._recent, key=lambda item: item[:2], reverse=True)
        )
        return AggregateMetrics(
            window_start=self.window_start,
            window_end=self.window_end,
            total_jobs=self._total,
            successful_jobs=self._succeeded,
            failed_jobs=self._failed,
            cancelled_jobs=self._cancelled,
            success_rate=rate,
            jobs_by_day=dict(sorted(self._by_day.items())),
            recent_jobs=recent,
            avg_job_duration_seconds=self._duration_mean if self._duration_count else 0.0,
            warning_count=self._warnings,
            error_count=self._errors,
            in_progress_jobs=len(self._open_starts),
        )


def aggregate(
    events: Iterable[LogEvent],
    *,
    days: int,
    today: date,
    recent_limit: int = 10,
    pairing: DurationPairing = DurationPairing.LAST_START_WINS,
    report_tz: tzinfo = UTC,
) -> AggregateMetrics:
    """Fold ``events`` over the ``days``-day window ending ``today``."""
    agg = MetricsAggregator.for_days(
        days, today=today, recent_limit=recent_limit, pairing=pairing, report_tz=report_tz
    )
    agg.extend(events)
    return agg.result()
