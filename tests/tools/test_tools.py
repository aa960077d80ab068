from __future__ import annotations

from pathlib import Path

import pytest

from runner_fleet_ops.tools.dashboard import dashboard_data_impl
from runner_fleet_ops.tools.locate import locate_logs_impl
from runner_fleet_ops.tools.metrics import collect_job_metrics_impl
from runner_fleet_ops.tools.params import MAX_RECENT, parse_days, parse_now, parse_recent_limit
from runner_fleet_ops.tools.rotation import rotate_logs_impl


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "RUNNER_OPS_LOG_PATH",
        "RUNNER_OPS_DAYS",
        "RUNNER_OPS_RETENTION_DAYS",
        "RUNNER_OPS_ARCHIVE_RETENTION_DAYS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.asyncio
async def test_collect_job_metrics_impl(tmp_path: Path, write_runner_log) -> None:
    write_runner_log(tmp_path / "Worker.log")

    out = await collect_job_metrics_impl(log_path=str(tmp_path), days=3, now="2024-01-15T12:00:00Z")

    assert out["totalJobs"] == 2
    assert out["successRate"] == 0.5
    assert len(out["jobsByDay"]) == 3
    assert out["filesParsed"] == 1
    assert out["logPath"] == str(tmp_path)


@pytest.mark.asyncio
async def test_collect_job_metrics_impl_uses_env_path(
    tmp_path: Path, write_runner_log, monkeypatch: pytest.MonkeyPatch
) -> None:
    write_runner_log(tmp_path / "Worker.log")
    monkeypatch.setenv("RUNNER_OPS_LOG_PATH", str(tmp_path))

    out = await collect_job_metrics_impl(now="2024-01-15T12:00:00Z")

    assert out["totalJobs"] == 2
    assert len(out["jobsByDay"]) == 7


@pytest.mark.asyncio
async def test_collect_job_metrics_impl_missing_path_is_zero(tmp_path: Path) -> None:
    out = await collect_job_metrics_impl(log_path=str(tmp_path / "missing"))

    assert out["totalJobs"] == 0
    assert out["successRate"] == 0.0


@pytest.mark.asyncio
async def test_collect_job_metrics_impl_rejects_bad_days() -> None:
    with pytest.raises(ValueError, match="days"):
        await collect_job_metrics_impl(days=0)


@pytest.mark.asyncio
async def test_dashboard_data_impl(tmp_path: Path, write_runner_log, fake_probe) -> None:
    write_runner_log(tmp_path / "Worker.log")

    out = await dashboard_data_impl(log_path=str(tmp_path), now="2024-01-15T12:00:00Z", probe=fake_probe)

    assert {"status", "timestamp", "metrics", "charts", "recentJobs"} <= set(out)
    assert out["metrics"]["totalJobsToday"] == 2


def test_rotate_logs_impl_defaults_to_dry_run(tmp_path: Path, age_file) -> None:
    log = tmp_path / "old.log"
    log.write_text("x" * 1000, encoding="utf-8")
    age_file(log, 30)

    out = rotate_logs_impl(log_path=str(tmp_path))

    assert out["dryRun"] is True
    assert out["filesCompressed"] == 1
    assert log.exists()


def test_rotate_logs_impl_real_run_and_thresholds(tmp_path: Path, age_file) -> None:
    log = tmp_path / "old.log"
    log.write_text("x" * 1000, encoding="utf-8")
    age_file(log, 3)

    kept = rotate_logs_impl(log_path=str(tmp_path), dry_run=False)
    rotated = rotate_logs_impl(log_path=str(tmp_path), retention_days=1, dry_run=False)

    assert kept["filesCompressed"] == 0
    assert rotated["filesCompressed"] == 1
    assert not log.exists()


def test_rotate_logs_impl_env_retention(tmp_path: Path, age_file, monkeypatch: pytest.MonkeyPatch) -> None:
    log = tmp_path / "old.log"
    log.write_text("x", encoding="utf-8")
    age_file(log, 3)
    monkeypatch.setenv("RUNNER_OPS_RETENTION_DAYS", "2")

    assert rotate_logs_impl(log_path=str(tmp_path))["filesCompressed"] == 1


def test_rotate_logs_impl_requires_path() -> None:
    with pytest.raises(ValueError, match="log_path"):
        rotate_logs_impl()


def test_rotate_logs_impl_rejects_negative_retention(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="retention_days"):
        rotate_logs_impl(log_path=str(tmp_path), retention_days=-1)


def test_locate_logs_impl(tmp_path: Path) -> None:
    diag = tmp_path / "actions-runner" / "_diag"
    diag.mkdir(parents=True)

    out = locate_logs_impl(platform="linux", home=str(tmp_path), extra=["", str(tmp_path / "nope")])

    assert out["platform"] == "linux"
    assert out["candidates"][0] == {"path": str(tmp_path / "nope"), "exists": False}
    assert str(diag) in out["found"]


def test_params() -> None:
    assert parse_days(None, default=7) == 7
    assert parse_recent_limit(10_000, default=10) == MAX_RECENT
    assert parse_now(None) is None
    with pytest.raises(ValueError):
        parse_days(True, default=7)
    with pytest.raises(ValueError):
        parse_days(10_000, default=7)
    with pytest.raises(ValueError, match="ISO-8601"):
        parse_now("yesterday")
