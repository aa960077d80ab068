from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from runner_fleet_ops.core.collector import collect_metrics
from runner_fleet_ops.core.config import (
    DashboardConfig,
    MonitorConfig,
    RotationConfig,
    parse_command,
    resolve_collector_config,
    resolve_log_path,
    resolve_rotation_config,
)
from runner_fleet_ops.core.dashboard import get_dashboard_data, snapshot_json
from runner_fleet_ops.core.monitor import ContinuousMonitor, MonitorSummary
from runner_fleet_ops.core.rotation import RotationEngine
from runner_fleet_ops.core.time_window import parse_iso_dt
from runner_fleet_ops.tools.locate import locate_logs_impl

LOG_LEVEL_ENV = "RUNNER_OPS_LOG_LEVEL"


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _now(args: argparse.Namespace) -> datetime | None:
    return parse_iso_dt(args.now) if args.now else None


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _cmd_collect(args: argparse.Namespace) -> None:
    cfg = resolve_collector_config()
    if args.days is not None:
        cfg = replace(cfg, days=args.days)
    path = resolve_log_path(args.log_path)
    result = asyncio.run(collect_metrics(path, config=cfg, now=_now(args)))

    for w in result.warnings:
        print(f"warning: {w.path}: {w.reason}", file=sys.stderr)
    if args.json:
        _print_json(result.to_dict())
        return

    m = result.metrics
    print(f"Window: {m.window_start} .. {m.window_end} ({result.files_parsed} files parsed)")
    print(
        f"Jobs: {m.total_jobs} total, {m.successful_jobs} succeeded, "
        f"{m.failed_jobs} failed, {m.cancelled_jobs} cancelled"
    )
    print(f"Success rate: {m.success_rate:.1%}")
    print(f"Average duration: {m.avg_job_duration_seconds:.1f}s")
    print(f"Warnings: {m.warning_count}  Errors: {m.error_count}  In progress: {m.in_progress_jobs}")
    print("\nJobs per day:")
    for d, n in m.jobs_by_day.items():
        print(f"  {d.isoformat()}  {n}")
    if m.recent_jobs:
        print("\nRecent jobs:")
        for j in m.recent_jobs:
            duration = f"{j.duration_seconds:.0f}s" if j.duration_seconds is not None else "-"
            print(f"  {j.timestamp.isoformat()}  {j.outcome.value:<9}  {duration:>6}  {j.name}")


def _cmd_rotate(args: argparse.Namespace) -> None:
    path = resolve_log_path(args.log_path)
    if path is None:
        raise ValueError("a log directory is required (--log-path or RUNNER_OPS_LOG_PATH)")
    cfg = resolve_rotation_config(RotationConfig())
    if args.retention_days is not None:
        cfg = replace(cfg, retention_days=args.retention_days)
    if args.archive_retention_days is not None:
        cfg = replace(cfg, archive_retention_days=args.archive_retention_days)

    result = RotationEngine(cfg).run(path, dry_run=args.dry_run, now=_now(args))
    for w in result.warnings:
        print(f"warning: {w.path}: {w.reason}", file=sys.stderr)
    if args.json:
        _print_json(result.to_dict())
        return
    verb = "Would compress" if result.dry_run else "Compressed"
    print(f"Scanned {result.files_scanned} files under {path}")
    print(f"{verb} {result.files_compressed} files")
    print(f"{'Would delete' if result.dry_run else 'Deleted'} {result.files_deleted} expired archives")
    print(f"{'Would free' if result.dry_run else 'Freed'} {result.bytes_freed} bytes")


def _cmd_dashboard(args: argparse.Namespace) -> None:
    days = args.days if args.days is not None else resolve_collector_config().days
    cfg = DashboardConfig(
        days=days,
        health_results_dir=Path(args.health_results_dir) if args.health_results_dir else None,
    )
    snapshot = asyncio.run(get_dashboard_data(resolve_log_path(args.log_path), config=cfg, now=_now(args)))
    print(snapshot_json(snapshot))


async def _run_monitor(monitor: ContinuousMonitor, max_iterations: int | None) -> MonitorSummary:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, monitor.stop)
        except (NotImplementedError, RuntimeError):
            # Not available on Windows event loops; Ctrl+C still ends the loop.
            pass
    return await monitor.run(max_iterations=max_iterations)


def _cmd_monitor(args: argparse.Namespace) -> None:
    if args.max_iterations is not None and args.max_iterations < 1:
        raise ValueError("--max-iterations must be >= 1")
    cfg = MonitorConfig(
        results_dir=Path(args.results_dir),
        work_directory=Path(args.work_directory),
        interval_seconds=args.interval,
        disk_threshold_gb=args.disk_threshold_gb,
        alert_threshold=args.alert_threshold,
        max_result_files=args.max_result_files,
        cleanup_every=args.cleanup_every,
        health_command=parse_command(args.health_command),
    )
    monitor = ContinuousMonitor(cfg)
    try:
        summary = asyncio.run(_run_monitor(monitor, args.max_iterations))
    except KeyboardInterrupt:
        summary = monitor.summary
    print(
        f"Checks: {summary.checks_performed}  Failures: {summary.failures}  "
        f"Alerts: {summary.alerts_sent}  Last status: {summary.last_status or '-'}"
    )


def _cmd_locate(args: argparse.Namespace) -> None:
    out = locate_logs_impl(extra=args.extra)
    if args.json:
        _print_json(out)
        return
    for c in out["candidates"]:
        mark = "found" if c["exists"] else "-"
        print(f"{mark:<6} {c['path']}")
    if not out["found"]:
        print("\nNo runner log directory found. Pass --extra or set RUNNER_OPS_LOG_PATH.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="runner-ops", description="Self-hosted runner log metrics and maintenance.")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging (default level: RUNNER_OPS_LOG_LEVEL)")
    sub = p.add_subparsers(dest="command", required=True)

    def log_path_arg(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--log-path", default=None, help="Runner log directory or file (default: RUNNER_OPS_LOG_PATH)")
        sp.add_argument("--now", default=None, help="ISO8601 reference time (assumes UTC if tz missing)")

    c = sub.add_parser("collect", help="Parse logs and print job metrics")
    log_path_arg(c)
    c.add_argument("--days", type=int, default=None, help="Look back N days (default: 7 or RUNNER_OPS_DAYS)")
    c.add_argument("--json", action="store_true", help="Print the metrics as JSON")
    c.set_defaults(func=_cmd_collect)

    r = sub.add_parser("rotate", help="Compress old logs and purge expired archives")
    log_path_arg(r)
    r.add_argument("--retention-days", type=float, default=None, help="Compress logs older than this (default: 7)")
    r.add_argument(
        "--archive-retention-days", type=float, default=None, help="Delete archives older than this (default: 90)"
    )
    r.add_argument("--dry-run", action="store_true", help="Report what would change without touching files")
    r.add_argument("--json", action="store_true", help="Print the result as JSON")
    r.set_defaults(func=_cmd_rotate)

    d = sub.add_parser("dashboard", help="Print the dashboard snapshot as JSON")
    log_path_arg(d)
    d.add_argument("--days", type=int, default=None, help="Look back N days (default: 7 or RUNNER_OPS_DAYS)")
    d.add_argument("--health-results-dir", default=None, help="Monitor results directory, for disk history")
    d.set_defaults(func=_cmd_dashboard)

    m = sub.add_parser("monitor", help="Run health checks in a loop until interrupted")
    m.add_argument("--results-dir", default="health-results")
    m.add_argument("--work-directory", default=".", help="Directory whose volume is checked for free space")
    m.add_argument("--interval", type=float, default=300, help="Seconds between checks (default: 300)")
    m.add_argument("--disk-threshold-gb", type=float, default=10)
    m.add_argument("--alert-threshold", type=int, default=3, help="Alert every N consecutive failures")
    m.add_argument("--max-result-files", type=int, default=288)
    m.add_argument("--cleanup-every", type=int, default=12, help="Prune results every N iterations")
    m.add_argument("--health-command", default=None, help="External health check (default: built-in probe)")
    m.add_argument("--max-iterations", type=int, default=None, help="Stop after N checks")
    m.set_defaults(func=_cmd_monitor)

    loc = sub.add_parser("locate", help="List candidate runner log directories")
    loc.add_argument("--extra", action="append", default=[], help="Additional directory to consider (repeatable)")
    loc.add_argument("--json", action="store_true")
    loc.set_defaults(func=_cmd_locate)

    return p


def main(argv: Sequence[str] | None = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        args.func(args)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    main()
