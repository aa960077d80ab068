"""Health-check collaborator adapters.

The monitor treats the health check as a black box that returns a
``HealthReport``. Either an external command (the runner's health-check
script, asked for JSON output) or the built-in probe check provides it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field, ValidationError, field_validator

from .probe import PsutilProbe, RunnerStatus, SystemProbe

logger = logging.getLogger(__name__)

HealthStatus = Literal["healthy", "warning", "unhealthy", "error"]
FAILING_STATUSES = frozenset({"unhealthy", "error"})


class HealthReport(BaseModel):
    status: HealthStatus = Field(description="Overall health status.")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    message: str = Field(default="", description="Short human-readable summary.")
    disk_free_gb: float | None = Field(default=None, ge=0)
    disk_total_gb: float | None = Field(default=None, ge=0)
    checks: dict[str, Any] = Field(default_factory=dict, description="Per-check details.")

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "ok":
                return "healthy"
            if v in ("degraded", "warn"):
                return "warning"
            if v in ("critical", "failed"):
                return "unhealthy"
        return v

    @property
    def failed(self) -> bool:
        return self.status in FAILING_STATUSES

    @classmethod
    def error(cls, message: str) -> HealthReport:
        return cls(status="error", message=message)


class HealthCheck(Protocol):
    async def __call__(self) -> HealthReport:
        ...


class CommandHealthCheck:
    """Run an external health-check command and parse its JSON output.

    The command is invoked as
    ``<command> -OutputFormat JSON -DiskThresholdGB <n> -WorkDirectory <dir>``.
    Non-zero exits, timeouts and unparseable output become ``error`` reports.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        disk_threshold_gb: float,
        work_directory: str | Path,
        timeout_seconds: float = 120,
    ) -> None:
        if not command:
            raise ValueError("health command must not be empty")
        self.command = tuple(command)
        self.disk_threshold_gb = disk_threshold_gb
        self.work_directory = Path(work_directory)
        self.timeout_seconds = timeout_seconds

    def argv(self) -> list[str]:
        threshold = f"{self.disk_threshold_gb:g}"
        return [
            *self.command,
            "-OutputFormat",
            "JSON",
            "-DiskThresholdGB",
            threshold,
            "-WorkDirectory",
            str(self.work_directory),
        ]

    async def __call__(self) -> HealthReport:
        argv = self.argv()
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("Cannot start health check %s: %s", argv[0], exc)
            return HealthReport.error(f"cannot start health check: {exc}")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            return HealthReport.error(f"health check timed out after {self.timeout_seconds:g}s")

        text = stdout.decode("utf-8", errors="replace").strip()
        if text:
            try:
                report = HealthReport.model_validate_json(text)
            except ValidationError as exc:
                logger.warning("Health check produced invalid JSON: %s", exc)
                report = None
            if report is not None:
                if proc.returncode and not report.failed:
                    # A failing exit code wins over a hopeful payload.
                    report = report.model_copy(update={"status": "unhealthy"})
                return report

        detail = stderr.decode("utf-8", errors="replace").strip() or "no output"
        return HealthReport.error(f"health check exited {proc.returncode}: {detail[:500]}")


class ProbeHealthCheck:
    """Built-in check: disk free space against a threshold plus runner state."""

    def __init__(
        self,
        *,
        disk_threshold_gb: float,
        work_directory: str | Path,
        probe: SystemProbe | None = None,
    ) -> None:
        self.disk_threshold_gb = disk_threshold_gb
        self.work_directory = Path(work_directory)
        self.probe = probe or PsutilProbe()

    async def __call__(self) -> HealthReport:
        disk = await asyncio.to_thread(self.probe.disk_usage, self.work_directory)
        runner = await asyncio.to_thread(self.probe.runner_state)

        checks: dict[str, Any] = {
            "disk": {
                "freeGB": disk.free_gb,
                "totalGB": disk.total_gb,
                "freePercent": disk.free_percent,
                "thresholdGB": self.disk_threshold_gb,
                "ok": disk.free_gb >= self.disk_threshold_gb,
            },
            "runner": {"status": runner.status.value, "uptimeHours": runner.uptime_hours},
        }

        problems: list[str] = []
        status: HealthStatus = "healthy"
        if runner.status is RunnerStatus.OFFLINE:
            status = "unhealthy"
            problems.append("runner offline")
        if disk.free_gb < self.disk_threshold_gb:
            status = "unhealthy"
            problems.append(f"disk free {disk.free_gb:g}GB below {self.disk_threshold_gb:g}GB")
        elif disk.free_gb < self.disk_threshold_gb * 1.5 and status == "healthy":
            status = "warning"
            problems.append(f"disk free {disk.free_gb:g}GB close to threshold")

        return HealthReport(
            status=status,
            message="; ".join(problems) or "all checks passed",
            disk_free_gb=disk.free_gb,
            disk_total_gb=disk.total_gb,
            checks=checks,
        )
