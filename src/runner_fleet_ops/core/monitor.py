"""Continuous health monitor.

A cooperative loop: run the health check, persist the timestamped result,
track the consecutive-failure streak, alert, prune old results, sleep.
One check is in flight at a time. ``stop()`` ends the loop at the next
await point and a summary is always written on the way out.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from .config import MonitorConfig
from .health import CommandHealthCheck, HealthCheck, HealthReport, ProbeHealthCheck
from .probe import SystemProbe

logger = logging.getLogger(__name__)

RESULT_PREFIX = "health-"
SUMMARY_FILE = "monitor-summary.json"
ALERTS_FILE = "alerts.jsonl"


class AlertSink(Protocol):
    def __call__(self, report: HealthReport, consecutive_failures: int) -> None:
        ...


class FileAlertSink:
    """Log the alert at ERROR and append it to ``alerts.jsonl``."""

    def __init__(self, results_dir: str | Path) -> None:
        self.path = Path(results_dir) / ALERTS_FILE

    def __call__(self, report: HealthReport, consecutive_failures: int) -> None:
        logger.error(
            "ALERT: %d consecutive failed health checks (last status=%s: %s)",
            consecutive_failures,
            report.status,
            report.message,
        )
        record = {
            "timestamp": datetime.now(UTC).isoformat(),
            "consecutiveFailures": consecutive_failures,
            "status": report.status,
            "message": report.message,
        }
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as exc:
            logger.warning("Cannot append alert to %s: %s", self.path, exc)


@dataclass(slots=True)
class MonitorSummary:
    started_at: str
    stopped_at: str | None = None
    checks_performed: int = 0
    failures: int = 0
    alerts_sent: int = 0
    consecutive_failures: int = 0
    last_status: str | None = None
    results_pruned: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def build_health_check(config: MonitorConfig, *, probe: SystemProbe | None = None) -> HealthCheck:
    """External command when one is configured, else the built-in probe check."""
    if config.health_command:
        return CommandHealthCheck(
            config.health_command,
            disk_threshold_gb=config.disk_threshold_gb,
            work_directory=config.work_directory,
            timeout_seconds=config.command_timeout_seconds,
        )
    return ProbeHealthCheck(
        disk_threshold_gb=config.disk_threshold_gb,
        work_directory=config.work_directory,
        probe=probe,
    )


class ContinuousMonitor:
    def __init__(
        self,
        config: MonitorConfig,
        *,
        health_check: HealthCheck | None = None,
        alert_sink: AlertSink | None = None,
    ) -> None:
        self.config = config
        self.health_check = health_check or build_health_check(config)
        self.alert_sink = alert_sink or FileAlertSink(config.results_dir)
        self.consecutive_failures = 0
        self.summary = MonitorSummary(started_at=datetime.now(UTC).isoformat())
        self._stop = asyncio.Event()

    def stop(self) -> None:
        """Ask the loop to finish; safe to call from a signal handler."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def prepare(self) -> None:
        """Create the results directory (raises OSError: fatal setup failure)."""
        self.config.results_dir.mkdir(parents=True, exist_ok=True)

    async def run(self, *, max_iterations: int | None = None) -> MonitorSummary:
        """Run until ``stop()`` or ``max_iterations`` checks, then write the summary."""
        self.prepare()
        logger.info(
            "Monitor started: interval=%ss results=%s",
            self.config.interval_seconds,
            self.config.results_dir,
        )
        iteration = 0
        try:
            while not self.stopping:
                iteration += 1
                await self.run_once()
                if iteration % self.config.cleanup_every == 0:
                    self.prune_results()
                if max_iterations is not None and iteration >= max_iterations:
                    break
                await self._sleep()
        finally:
            self._finish()
        return self.summary

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.config.interval_seconds)
        except TimeoutError:
            pass

    async def run_once(self) -> HealthReport:
        """One iteration: check, persist, update streak, alert."""
        try:
            report = await self.health_check()
        except Exception as exc:  # the collaborator is a black box; its failure is a failed check
            logger.exception("Health check raised")
            report = HealthReport.error(f"health check raised: {exc}")

        self.summary.checks_performed += 1
        self.summary.last_status = report.status
        self.write_result(report)

        if report.failed:
            self.consecutive_failures += 1
            self.summary.failures += 1
            logger.warning(
                "Health check %s (%d consecutive): %s",
                report.status,
                self.consecutive_failures,
                report.message,
            )
            if self.consecutive_failures % self.config.alert_threshold == 0:
                self.alert_sink(report, self.consecutive_failures)
                self.summary.alerts_sent += 1
        else:
            if self.consecutive_failures:
                logger.info("Health recovered after %d failed checks", self.consecutive_failures)
            elif report.status == "warning":
                logger.warning("Health check warning: %s", report.message)
            self.consecutive_failures = 0
        self.summary.consecutive_failures = self.consecutive_failures
        return report

    def write_result(self, report: HealthReport) -> Path | None:
        stamp = report.timestamp.astimezone(UTC).strftime("%Y%m%d-%H%M%S")
        path = self.config.results_dir / f"{RESULT_PREFIX}{stamp}.json"
        n = 1
        while path.exists():
            path = self.config.results_dir / f"{RESULT_PREFIX}{stamp}_{n}.json"
            n += 1
        try:
            path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Cannot write health result %s: %s", path, exc)
            self.summary.errors.append(f"write {path.name}: {exc}")
            return None
        return path

    def result_files(self) -> list[Path]:
        """Persisted results, oldest first (names sort chronologically)."""
        return sorted(self.config.results_dir.glob(f"{RESULT_PREFIX}*.json"))

    def prune_results(self) -> int:
        """Keep the newest ``max_result_files`` results; return how many were removed."""
        files = self.result_files()
        excess = len(files) - self.config.max_result_files
        removed = 0
        for path in files[: max(0, excess)]:
            try:
                path.unlink()
                removed += 1
            except OSError as exc:
                logger.warning("Cannot remove old result %s: %s", path, exc)
        if removed:
            logger.info("Pruned %d old health results", removed)
        self.summary.results_pruned += removed
        return removed

    def _finish(self) -> None:
        self.summary.stopped_at = datetime.now(UTC).isoformat()
        logger.info(
            "Monitor stopped: checks=%d failures=%d alerts=%d",
            self.summary.checks_performed,
            self.summary.failures,
            self.summary.alerts_sent,
        )
        path = self.config.results_dir / SUMMARY_FILE
        try:
            path.write_text(json.dumps(self.summary.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Cannot write monitor summary %s: %s", path, exc)
