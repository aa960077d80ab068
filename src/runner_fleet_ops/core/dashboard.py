"""Dashboard data provider.

Runs locator output through parser, aggregator and probe and assembles one
read-only snapshot for a UI or API layer. It never raises for missing or
unreadable log paths; the dashboard must always have something to render.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .collector import CollectionResult, collect_metrics
from .config import DashboardConfig
from .health import HealthReport
from .models import AggregateMetrics, JobOutcome, JobSummary
from .monitor import RESULT_PREFIX
from .probe import DiskUsage, PsutilProbe, RunnerState, RunnerStatus, SystemProbe
from .time_window import normalize_ts, window_dates

logger = logging.getLogger(__name__)

_STATUS_BY_OUTCOME = {
    JobOutcome.SUCCEEDED: "success",
    JobOutcome.FAILED: "failure",
    JobOutcome.CANCELLED: "cancelled",
    JobOutcome.UNKNOWN: "unknown",
}


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SnapshotMetrics(_Model):
    total_jobs_today: int = Field(default=0, ge=0, alias="totalJobsToday")
    successful_jobs: int = Field(default=0, ge=0, alias="successfulJobs")
    failed_jobs: int = Field(default=0, ge=0, alias="failedJobs")
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0, alias="successRate")
    disk_free_gb: float = Field(default=0.0, ge=0.0, alias="diskFreeGB")
    disk_total_gb: float = Field(default=0.0, ge=0.0, alias="diskTotalGB")
    avg_job_duration: float = Field(default=0.0, ge=0.0, alias="avgJobDuration")
    queue_length: int = Field(default=0, ge=0, alias="queueLength")
    uptime_hours: float = Field(default=0.0, ge=0.0, alias="uptimeHours")


class ChartPoint(_Model):
    date: str
    value: int | float


class SnapshotCharts(_Model):
    jobs_per_day: list[ChartPoint] = Field(default_factory=list, alias="jobsPerDay")
    disk_per_day: list[ChartPoint] = Field(default_factory=list, alias="diskPerDay")


class RecentJob(_Model):
    name: str
    outcome: str
    status: str
    timestamp: str
    duration: float | None = None


class DashboardSnapshot(_Model):
    """One immutable, fully computed dashboard document."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    status: str = "offline"
    timestamp: str
    metrics: SnapshotMetrics = Field(default_factory=SnapshotMetrics)
    charts: SnapshotCharts = Field(default_factory=SnapshotCharts)
    recent_jobs: list[RecentJob] = Field(default_factory=list, alias="recentJobs")
    runner_state: str = Field(default=RunnerStatus.OFFLINE.value, alias="runnerState")
    warnings: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def load_disk_history(results_dir: str | Path | None) -> dict[date, float]:
    """Last disk-free sample per UTC day from persisted monitor results."""
    if results_dir is None:
        return {}
    root = Path(results_dir)
    if not root.is_dir():
        return {}
    history: dict[date, tuple[datetime, float]] = {}
    for path in sorted(root.glob(f"{RESULT_PREFIX}*.json")):
        try:
            report = HealthReport.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.debug("Ignoring unreadable health result %s: %s", path, exc)
            continue
        if report.disk_free_gb is None:
            continue
        ts = normalize_ts(report.timestamp)
        prev = history.get(ts.date())
        if prev is None or ts >= prev[0]:
            history[ts.date()] = (ts, report.disk_free_gb)
    return {d: v for d, (_, v) in history.items()}


def _recent_job(summary: JobSummary) -> RecentJob:
    return RecentJob(
        name=summary.name,
        outcome=summary.outcome.value,
        status=_STATUS_BY_OUTCOME[summary.outcome],
        timestamp=summary.timestamp.isoformat(),
        duration=round(summary.duration_seconds, 1) if summary.duration_seconds is not None else None,
    )


def build_snapshot(
    *,
    now: datetime,
    days: int,
    metrics: AggregateMetrics | None,
    disk: DiskUsage,
    runner: RunnerState,
    disk_history: dict[date, float] | None = None,
    warnings: list[str] | None = None,
) -> DashboardSnapshot:
    """Assemble a snapshot from already-computed parts (pure)."""
    axis = window_dates(days, today=now.date())
    by_day = metrics.jobs_by_day if metrics is not None else {}
    history = disk_history or {}

    jobs_per_day = [ChartPoint(date=d.isoformat(), value=by_day.get(d, 0)) for d in axis]
    # Only the current disk state is observable; days without a recorded sample reuse it.
    disk_per_day = [ChartPoint(date=d.isoformat(), value=history.get(d, disk.free_gb)) for d in axis]
    if axis:
        disk_per_day[-1] = ChartPoint(date=axis[-1].isoformat(), value=disk.free_gb)

    snapshot_metrics = SnapshotMetrics()
    recent: list[RecentJob] = []
    if metrics is not None:
        snapshot_metrics = SnapshotMetrics(
            total_jobs_today=by_day.get(now.date(), 0),
            successful_jobs=metrics.successful_jobs,
            failed_jobs=metrics.failed_jobs,
            success_rate=round(metrics.success_rate, 4),
            avg_job_duration=round(metrics.avg_job_duration_seconds, 1),
            queue_length=metrics.in_progress_jobs,
        )
        recent = [_recent_job(j) for j in metrics.recent_jobs]

    snapshot_metrics = snapshot_metrics.model_copy(
        update={
            "disk_free_gb": disk.free_gb,
            "disk_total_gb": disk.total_gb,
            "uptime_hours": runner.uptime_hours,
        }
    )

    return DashboardSnapshot(
        status="offline" if runner.status is RunnerStatus.OFFLINE else "online",
        timestamp=now.isoformat(),
        metrics=snapshot_metrics,
        charts=SnapshotCharts(jobs_per_day=jobs_per_day, disk_per_day=disk_per_day),
        recent_jobs=recent,
        runner_state=runner.status.value,
        warnings=list(warnings or []),
    )


def _probe_safely(probe: SystemProbe, disk_path: Path) -> tuple[DiskUsage, RunnerState, list[str]]:
    warnings: list[str] = []
    try:
        disk = probe.disk_usage(disk_path)
    except Exception as exc:  # probe backends raise library-specific errors
        logger.warning("Disk probe failed: %s", exc)
        warnings.append(f"disk probe failed: {exc}")
        disk = DiskUsage()
    try:
        runner = probe.runner_state()
    except Exception as exc:
        logger.warning("Runner probe failed: %s", exc)
        warnings.append(f"runner probe failed: {exc}")
        runner = RunnerState()
    return disk, runner, warnings


async def get_dashboard_data(
    log_path: str | Path | None,
    *,
    config: DashboardConfig | None = None,
    probe: SystemProbe | None = None,
    now: datetime | None = None,
) -> DashboardSnapshot:
    """Return the dashboard snapshot for ``log_path`` (a directory or file).

    ``None``, missing, or unreadable paths produce a well-formed snapshot with
    zeroed metrics. Nothing is written.
    """
    cfg = config or DashboardConfig()
    probe = probe or PsutilProbe()
    now = normalize_ts(now) if now is not None else datetime.now(UTC)
    warnings: list[str] = []

    path: Path | None = None
    if log_path is not None and str(log_path).strip():
        path = Path(log_path)

    collected: CollectionResult | None = None
    try:
        collected = await collect_metrics(path, config=cfg.collector(), now=now)
    except (OSError, ValueError) as exc:
        logger.warning("Log collection failed for %s: %s", path, exc)
        warnings.append(f"log collection failed: {exc}")
    if collected is not None:
        warnings.extend(f"{w.path}: {w.reason}" for w in collected.warnings)
    if path is None:
        warnings.append("no log path given")
    else:
        try:
            if not path.exists():
                warnings.append(f"log path not found: {path}")
        except OSError as exc:
            logger.warning("Log path %s not accessible: %s", path, exc)
            warnings.append(f"log path not accessible: {exc}")

    disk_path = cfg.disk_path or path or Path.cwd()
    disk, runner, probe_warnings = await asyncio.to_thread(_probe_safely, probe, disk_path)
    warnings.extend(probe_warnings)

    try:
        history = await asyncio.to_thread(load_disk_history, cfg.health_results_dir)
    except OSError as exc:
        logger.warning("Disk history unavailable: %s", exc)
        history = {}

    return build_snapshot(
        now=now,
        days=cfg.days,
        metrics=collected.metrics if collected is not None else None,
        disk=disk,
        runner=runner,
        disk_history=history,
        warnings=warnings,
    )


def snapshot_json(snapshot: DashboardSnapshot, *, indent: int | None = 2) -> str:
    return json.dumps(snapshot.to_dict(), indent=indent)
