from __future__ import annotations

import gzip
import os
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from runner_fleet_ops.core.probe import DiskUsage, RunnerState, RunnerStatus

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)

RUNNER_LINES = [
    "[2024-01-15 10:30:00Z INFO Worker] Running job: Build-123",
    "[2024-01-15 10:31:12Z WARN Worker] Node.js 16 actions are deprecated",
    "[2024-01-15 10:35:00Z INFO JobDispatcher] Job Build-123 completed with result: Succeeded",
    "[2024-01-15 11:02:40Z INFO Worker] Running job: Test-124",
    "[2024-01-15 11:09:05Z ERROR Worker] Process completed with exit code 1.",
    "[2024-01-15 11:09:06Z INFO JobDispatcher] Job Test-124 completed with result: Failed",
]


class FakeProbe:
    """SystemProbe stand-in with fixed answers."""

    def __init__(
        self,
        *,
        free_gb: float = 40.0,
        total_gb: float = 100.0,
        status: RunnerStatus = RunnerStatus.IDLE,
        uptime_hours: float = 5.0,
    ) -> None:
        self.disk = DiskUsage(free_gb=free_gb, total_gb=total_gb)
        self.state = RunnerState(status=status, uptime_hours=uptime_hours)
        self.disk_paths: list[Path] = []

    def disk_usage(self, path: str | Path) -> DiskUsage:
        self.disk_paths.append(Path(path))
        return self.disk

    def runner_state(self) -> RunnerState:
        return self.state


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_probe() -> type[FakeProbe]:
    return FakeProbe


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def write_runner_log() -> Callable[..., Path]:
    def _write(path: Path, lines: list[str] | None = None, *, compress: bool = False) -> Path:
        text = "\n".join(RUNNER_LINES if lines is None else lines) + "\n"
        path.parent.mkdir(parents=True, exist_ok=True)
        if compress:
            with gzip.open(path, "wt", encoding="utf-8") as f:
                f.write(text)
        else:
            path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def age_file() -> Callable[[Path, float], Path]:
    """Set a file's mtime to ``days`` days before the current time."""

    def _age(path: Path, days: float) -> Path:
        ts = time.time() - days * 86400
        os.utime(path, (ts, ts))
        return path

    return _age
