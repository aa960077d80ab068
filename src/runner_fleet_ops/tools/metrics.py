"""Implementation behind the ``collect_job_metrics`` tool."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from runner_fleet_ops.core.collector import collect_metrics
from runner_fleet_ops.core.config import CollectorConfig, resolve_collector_config, resolve_log_path
from runner_fleet_ops.tools.params import parse_days, parse_now, parse_recent_limit


async def collect_job_metrics_impl(
    *,
    log_path: str | None = None,
    days: int | None = None,
    recent_limit: int | None = None,
    now: str | None = None,
) -> dict[str, Any]:
    """Parse the runner logs under ``log_path`` and return aggregate metrics.

    ``log_path`` falls back to ``RUNNER_OPS_LOG_PATH``. A missing path is not
    an error: the result has zero totals and an empty-but-complete day axis.
    """
    base = resolve_collector_config(CollectorConfig())
    cfg = replace(
        base,
        days=parse_days(days, default=base.days),
        recent_limit=parse_recent_limit(recent_limit, default=base.recent_limit),
    )
    path = resolve_log_path(log_path)
    result = await collect_metrics(path, config=cfg, now=parse_now(now))
    out = result.to_dict()
    out["logPath"] = str(path) if path is not None else None
    return out
