"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: dashboard snapshot, job metrics, log rotation, log discovery
- Resources: help text, a sample runner log, the snapshot schema, log files by URI
- Prompts: a runner health review workflow

Run locally (stdio):
    python -m runner_fleet_ops.server.log_server
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from runner_fleet_ops.prompts.registry import register_prompts
from runner_fleet_ops.resources.registry import register_resources
from runner_fleet_ops.tools.dashboard import dashboard_data_impl
from runner_fleet_ops.tools.locate import locate_logs_impl
from runner_fleet_ops.tools.metrics import collect_job_metrics_impl
from runner_fleet_ops.tools.rotation import rotate_logs_impl

LOGGER = logging.getLogger(__name__)

LOG_LEVEL_ENV = "RUNNER_OPS_LOG_LEVEL"


def _configure_logging() -> None:
    """Log to stderr; stdout belongs to the stdio transport."""
    level_name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


mcp = FastMCP("runner-ops", json_response=True)

register_resources(mcp)
register_prompts(mcp)


@mcp.tool()
async def dashboard_data(
    log_path: str | None = None,
    days: int | None = None,
    health_results_dir: str | None = None,
    now: str | None = None,
) -> dict[str, Any]:
    """Return the runner dashboard snapshot.

    Parameters
    ----------
    log_path:
        Runner log directory (usually ``.../actions-runner/_diag``) or a single
        log file. Falls back to RUNNER_OPS_LOG_PATH. Missing paths are not an
        error; the snapshot is returned with zeroed metrics.
    days:
        Lookback window in days (default 7, or RUNNER_OPS_DAYS).
    health_results_dir:
        Directory the monitor writes health results to; used for disk history.
    now:
        Optional ISO-8601 reference time, mainly for reproducible reports.

    Returns
    -------
    dict:
        {"status", "timestamp", "metrics", "charts", "recentJobs", "runnerState", "warnings"}
    """
    return await dashboard_data_impl(
        log_path=log_path,
        days=days,
        health_results_dir=health_results_dir,
        now=now,
    )


@mcp.tool()
async def collect_job_metrics(
    log_path: str | None = None,
    days: int | None = None,
    recent_limit: int | None = None,
    now: str | None = None,
) -> dict[str, Any]:
    """Parse runner logs and return job metrics for the lookback window.

    Returns totals, success rate (0..1), per-day job counts, average job
    duration in seconds, warning/error counts, and the most recent jobs.
    """
    return await collect_job_metrics_impl(
        log_path=log_path,
        days=days,
        recent_limit=recent_limit,
        now=now,
    )


@mcp.tool()
async def rotate_logs(
    log_path: str | None = None,
    retention_days: float | None = None,
    archive_retention_days: float | None = None,
    dry_run: bool = True,
    now: str | None = None,
) -> dict[str, Any]:
    """Compress logs older than retention_days and delete archives older than archive_retention_days.

    Defaults to a dry run that only reports what would change. Compressed
    files go to the ``archive`` directory next to the logs.
    """
    return await asyncio.to_thread(
        rotate_logs_impl,
        log_path=log_path,
        retention_days=retention_days,
        archive_retention_days=archive_retention_days,
        dry_run=dry_run,
        now=now,
    )


@mcp.tool()
def locate_logs(extra: Sequence[str] | None = None) -> dict[str, Any]:
    """List the candidate runner log directories for this host and which exist."""
    return locate_logs_impl(extra=extra)


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
