"""Implementation behind the ``rotate_logs`` tool."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from runner_fleet_ops.core.config import RotationConfig, resolve_log_path, resolve_rotation_config
from runner_fleet_ops.core.rotation import RotationEngine
from runner_fleet_ops.tools.params import parse_now, parse_retention


def rotate_logs_impl(
    *,
    log_path: str | None = None,
    retention_days: float | None = None,
    archive_retention_days: float | None = None,
    dry_run: bool = True,
    now: str | None = None,
) -> dict[str, Any]:
    """Compress aged logs and purge expired archives under ``log_path``.

    Notes
    -----
    - Defaults to a dry run; pass ``dry_run=False`` to modify files.
    - Explicit thresholds win over ``RUNNER_OPS_RETENTION_DAYS`` and
      ``RUNNER_OPS_ARCHIVE_RETENTION_DAYS``.
    """
    path = resolve_log_path(log_path)
    if path is None:
        raise ValueError("log_path is required (or set RUNNER_OPS_LOG_PATH)")

    base = resolve_rotation_config(RotationConfig())
    cfg = replace(
        base,
        retention_days=parse_retention(retention_days, name="retention_days", default=base.retention_days),
        archive_retention_days=parse_retention(
            archive_retention_days,
            name="archive_retention_days",
            default=base.archive_retention_days,
        ),
    )
    result = RotationEngine(cfg).run(path, dry_run=dry_run, now=parse_now(now))
    out = result.to_dict()
    out["logPath"] = str(path)
    return out
