"""Implementation behind the ``dashboard_data`` tool."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from runner_fleet_ops.core.config import DashboardConfig, resolve_collector_config, resolve_log_path
from runner_fleet_ops.core.dashboard import get_dashboard_data
from runner_fleet_ops.core.probe import SystemProbe
from runner_fleet_ops.tools.params import parse_days, parse_now


async def dashboard_data_impl(
    *,
    log_path: str | None = None,
    days: int | None = None,
    health_results_dir: str | None = None,
    now: str | None = None,
    probe: SystemProbe | None = None,
) -> dict[str, Any]:
    """Return the dashboard snapshot as a camelCase dict."""
    default_days = resolve_collector_config().days
    cfg = DashboardConfig(
        days=parse_days(days, default=default_days),
        health_results_dir=Path(health_results_dir) if health_results_dir else None,
    )
    snapshot = await get_dashboard_data(
        resolve_log_path(log_path),
        config=cfg,
        probe=probe,
        now=parse_now(now),
    )
    return snapshot.to_dict()
