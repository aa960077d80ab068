from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from runner_fleet_ops.core.config import MonitorConfig
from runner_fleet_ops.core.health import CommandHealthCheck, HealthReport, ProbeHealthCheck
from runner_fleet_ops.core.monitor import ALERTS_FILE, SUMMARY_FILE, ContinuousMonitor, build_health_check


class ScriptedCheck:
    """Return the given statuses in order, one second apart."""

    def __init__(self, statuses: list[str]) -> None:
        self.statuses = list(statuses)
        self.calls = 0
        self.start = datetime(2024, 1, 15, 12, tzinfo=UTC)

    async def __call__(self) -> HealthReport:
        status = self.statuses[min(self.calls, len(self.statuses) - 1)]
        ts = self.start + timedelta(seconds=self.calls)
        self.calls += 1
        return HealthReport(status=status, timestamp=ts, message=status)


class RecordingSink:
    def __init__(self) -> None:
        self.alerts: list[tuple[str, int]] = []

    def __call__(self, report: HealthReport, consecutive_failures: int) -> None:
        self.alerts.append((report.status, consecutive_failures))


def _config(tmp_path: Path, **overrides) -> MonitorConfig:
    values = {"results_dir": tmp_path / "results", "interval_seconds": 0, "alert_threshold": 3}
    values.update(overrides)
    return MonitorConfig(**values)


@pytest.mark.asyncio
async def test_one_result_file_per_iteration(tmp_path: Path) -> None:
    monitor = ContinuousMonitor(_config(tmp_path), health_check=ScriptedCheck(["healthy"]), alert_sink=RecordingSink())

    summary = await monitor.run(max_iterations=4)

    assert summary.checks_performed == 4
    assert len(monitor.result_files()) == 4
    assert monitor.result_files()[0].name == "health-20240115-120000.json"


@pytest.mark.asyncio
async def test_alert_fires_on_multiples_of_threshold(tmp_path: Path) -> None:
    sink = RecordingSink()
    check = ScriptedCheck(["unhealthy"] * 7)
    monitor = ContinuousMonitor(_config(tmp_path), health_check=check, alert_sink=sink)

    summary = await monitor.run(max_iterations=7)

    assert [n for _, n in sink.alerts] == [3, 6]
    assert summary.failures == 7
    assert summary.alerts_sent == 2


@pytest.mark.asyncio
async def test_warning_does_not_count_and_recovery_resets(tmp_path: Path) -> None:
    sink = RecordingSink()
    check = ScriptedCheck(["error", "error", "warning", "error", "error", "healthy"])
    monitor = ContinuousMonitor(_config(tmp_path), health_check=check, alert_sink=sink)

    await monitor.run(max_iterations=6)

    assert sink.alerts == []
    assert monitor.consecutive_failures == 0


@pytest.mark.asyncio
async def test_raising_check_counts_as_error(tmp_path: Path) -> None:
    async def broken() -> HealthReport:
        raise RuntimeError("kaboom")

    monitor = ContinuousMonitor(_config(tmp_path, alert_threshold=1), health_check=broken, alert_sink=RecordingSink())

    report = await monitor.run_once()

    assert report.status == "error"
    assert "kaboom" in report.message
    assert monitor.consecutive_failures == 1


@pytest.mark.asyncio
async def test_prune_keeps_newest(tmp_path: Path) -> None:
    cfg = _config(tmp_path, max_result_files=3, cleanup_every=5)
    monitor = ContinuousMonitor(cfg, health_check=ScriptedCheck(["healthy"]), alert_sink=RecordingSink())

    summary = await monitor.run(max_iterations=5)

    names = [p.name for p in monitor.result_files()]
    assert names == [
        "health-20240115-120002.json",
        "health-20240115-120003.json",
        "health-20240115-120004.json",
    ]
    assert summary.results_pruned == 2


@pytest.mark.asyncio
async def test_summary_written_on_exit(tmp_path: Path) -> None:
    monitor = ContinuousMonitor(_config(tmp_path), health_check=ScriptedCheck(["healthy"]), alert_sink=RecordingSink())

    await monitor.run(max_iterations=2)

    data = json.loads((tmp_path / "results" / SUMMARY_FILE).read_text(encoding="utf-8"))
    assert data["checks_performed"] == 2
    assert data["last_status"] == "healthy"
    assert data["stopped_at"] is not None


@pytest.mark.asyncio
async def test_stop_interrupts_sleep(tmp_path: Path) -> None:
    cfg = _config(tmp_path, interval_seconds=3600)
    monitor = ContinuousMonitor(cfg, health_check=ScriptedCheck(["healthy"]), alert_sink=RecordingSink())

    task = asyncio.create_task(monitor.run())
    await asyncio.sleep(0.1)
    monitor.stop()
    summary = await asyncio.wait_for(task, timeout=5)

    assert summary.checks_performed == 1
    assert (tmp_path / "results" / SUMMARY_FILE).exists()


@pytest.mark.asyncio
async def test_same_second_results_do_not_overwrite(tmp_path: Path) -> None:
    class SameSecond(ScriptedCheck):
        async def __call__(self) -> HealthReport:
            self.calls += 1
            return HealthReport(status="healthy", timestamp=self.start)

    monitor = ContinuousMonitor(_config(tmp_path), health_check=SameSecond(["healthy"]), alert_sink=RecordingSink())

    await monitor.run(max_iterations=3)

    assert [p.name for p in monitor.result_files()] == [
        "health-20240115-120000.json",
        "health-20240115-120000_1.json",
        "health-20240115-120000_2.json",
    ]


def test_unwritable_results_dir_is_fatal(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    monitor = ContinuousMonitor(
        _config(tmp_path, results_dir=blocker / "results"),
        health_check=ScriptedCheck(["healthy"]),
        alert_sink=RecordingSink(),
    )

    with pytest.raises(OSError):
        monitor.prepare()


def test_file_alert_sink_appends_jsonl(tmp_path: Path) -> None:
    cfg = _config(tmp_path, alert_threshold=1)
    cfg.results_dir.mkdir(parents=True)
    monitor = ContinuousMonitor(cfg, health_check=ScriptedCheck(["unhealthy"]))

    asyncio.run(monitor.run_once())

    lines = (cfg.results_dir / ALERTS_FILE).read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["consecutiveFailures"] == 1


def test_build_health_check_selection(tmp_path: Path) -> None:
    assert isinstance(build_health_check(_config(tmp_path)), ProbeHealthCheck)
    assert isinstance(build_health_check(_config(tmp_path, health_command=("pwsh", "x.ps1"))), CommandHealthCheck)
