"""Host probe: disk space and runner process state."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

import psutil

from .config import ProbeConfig

logger = logging.getLogger(__name__)

_GB = 1024**3


class RunnerStatus(str, Enum):
    ONLINE = "online"  # listener up and a worker is running a job
    IDLE = "idle"  # listener up, no worker
    OFFLINE = "offline"


@dataclass(frozen=True, slots=True)
class DiskUsage:
    free_gb: float = 0.0
    total_gb: float = 0.0

    @property
    def free_percent(self) -> float:
        if self.total_gb <= 0:
            return 0.0
        return round(self.free_gb / self.total_gb * 100, 1)


@dataclass(frozen=True, slots=True)
class RunnerState:
    status: RunnerStatus = RunnerStatus.OFFLINE
    uptime_hours: float = 0.0


class SystemProbe(Protocol):
    """What the dashboard and monitor need to know about the host."""

    def disk_usage(self, path: str | Path) -> DiskUsage:
        ...

    def runner_state(self) -> RunnerState:
        ...


def _existing_anchor(path: Path) -> Path:
    """Closest existing ancestor, so probing a missing log dir still reports its volume."""
    p = path.expanduser()
    for candidate in (p, *p.parents):
        if candidate.exists():
            return candidate
    return Path(p.anchor or ".")


class PsutilProbe:
    """SystemProbe backed by psutil."""

    def __init__(self, config: ProbeConfig | None = None) -> None:
        self.config = config or ProbeConfig()

    def disk_usage(self, path: str | Path) -> DiskUsage:
        target = _existing_anchor(Path(path))
        try:
            usage = psutil.disk_usage(str(target))
        except OSError as exc:
            logger.warning("Disk usage unavailable for %s: %s", target, exc)
            return DiskUsage()
        return DiskUsage(
            free_gb=round(usage.free / _GB, 2),
            total_gb=round(usage.total / _GB, 2),
        )

    def runner_state(self) -> RunnerState:
        listener_started: float | None = None
        worker_running = False
        listeners = set(self.config.listener_process_names)
        workers = set(self.config.worker_process_names)

        for proc in psutil.process_iter(["name", "create_time"]):
            try:
                name = proc.info.get("name") or ""
                if name in listeners:
                    started = proc.info.get("create_time")
                    if started is not None and (listener_started is None or started < listener_started):
                        listener_started = started
                elif name in workers:
                    worker_running = True
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

        if listener_started is None:
            return RunnerState(status=RunnerStatus.OFFLINE)

        uptime = max(0.0, (time.time() - listener_started) / 3600)
        status = RunnerStatus.ONLINE if worker_running else RunnerStatus.IDLE
        return RunnerState(status=status, uptime_hours=round(uptime, 1))
