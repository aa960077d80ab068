"""Configuration values for the collection, rotation and monitor components.

Components receive these explicitly. Environment overrides are only applied by
the ``resolve_*`` helpers, which the CLI and server call at startup.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

DEFAULT_LOG_PATTERNS: tuple[str, ...] = ("*.log", "*.log.gz", "*.txt", "*.txt.gz")
DEFAULT_ARCHIVE_SUBDIR = "archive"

ENV_LOG_PATH = "RUNNER_OPS_LOG_PATH"
ENV_DAYS = "RUNNER_OPS_DAYS"
ENV_RETENTION_DAYS = "RUNNER_OPS_RETENTION_DAYS"
ENV_ARCHIVE_RETENTION_DAYS = "RUNNER_OPS_ARCHIVE_RETENTION_DAYS"


class DurationPairing(str, Enum):
    """Which start a completion pairs with when a job name starts twice."""

    LAST_START_WINS = "last"
    FIRST_START_WINS = "first"


@dataclass(frozen=True, slots=True)
class CollectorConfig:
    days: int = 7
    recent_limit: int = 10
    patterns: tuple[str, ...] = DEFAULT_LOG_PATTERNS
    archive_subdir: str | None = DEFAULT_ARCHIVE_SUBDIR
    pairing: DurationPairing = DurationPairing.LAST_START_WINS

    def __post_init__(self) -> None:
        if self.days < 1:
            raise ValueError("days must be >= 1")
        if self.recent_limit < 0:
            raise ValueError("recent_limit must be >= 0")
        if not self.patterns:
            raise ValueError("at least one log file pattern is required")


@dataclass(frozen=True, slots=True)
class RotationConfig:
    retention_days: float = 7
    archive_retention_days: float = 90
    patterns: tuple[str, ...] = ("*.log", "*.txt")
    archive_subdir: str = DEFAULT_ARCHIVE_SUBDIR

    def __post_init__(self) -> None:
        if self.retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        if self.archive_retention_days < 0:
            raise ValueError("archive_retention_days must be >= 0")
        if not self.archive_subdir or Path(self.archive_subdir).is_absolute():
            raise ValueError("archive_subdir must be a relative directory name")


@dataclass(frozen=True, slots=True)
class ProbeConfig:
    listener_process_names: tuple[str, ...] = ("Runner.Listener", "Runner.Listener.exe")
    worker_process_names: tuple[str, ...] = ("Runner.Worker", "Runner.Worker.exe")


@dataclass(frozen=True, slots=True)
class DashboardConfig:
    days: int = 7
    recent_limit: int = 10
    disk_path: Path | None = None  # defaults to the log path (or cwd)
    health_results_dir: Path | None = None  # monitor output, used for disk history

    def __post_init__(self) -> None:
        if self.days < 1:
            raise ValueError("days must be >= 1")

    def collector(self) -> CollectorConfig:
        return CollectorConfig(days=self.days, recent_limit=self.recent_limit)


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    results_dir: Path = Path("health-results")
    work_directory: Path = Path(".")
    interval_seconds: float = 300
    disk_threshold_gb: float = 10
    alert_threshold: int = 3
    max_result_files: int = 288
    cleanup_every: int = 12
    health_command: tuple[str, ...] = ()  # empty -> built-in probe check
    command_timeout_seconds: float = 120

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        if self.disk_threshold_gb < 0:
            raise ValueError("disk_threshold_gb must be >= 0")
        if self.alert_threshold < 1:
            raise ValueError("alert_threshold must be >= 1")
        if self.max_result_files < 1:
            raise ValueError("max_result_files must be >= 1")
        if self.cleanup_every < 1:
            raise ValueError("cleanup_every must be >= 1")
        if self.command_timeout_seconds <= 0:
            raise ValueError("command_timeout_seconds must be > 0")


def _env_number(environ: Mapping[str, str], name: str) -> float | None:
    raw = environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc


def _env_int(environ: Mapping[str, str], name: str) -> int | None:
    raw = environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


def resolve_log_path(explicit: str | Path | None, environ: Mapping[str, str] | None = None) -> Path | None:
    """Return the explicit log path, else ``RUNNER_OPS_LOG_PATH``, else None."""
    if explicit:
        return Path(explicit)
    env = os.environ if environ is None else environ
    raw = env.get(ENV_LOG_PATH)
    return Path(raw) if raw else None


def resolve_collector_config(
    cfg: CollectorConfig | None = None,
    environ: Mapping[str, str] | None = None,
) -> CollectorConfig:
    """Return config with ``RUNNER_OPS_DAYS`` applied."""
    cfg = cfg or CollectorConfig()
    env = os.environ if environ is None else environ
    days = _env_int(env, ENV_DAYS)
    if days is None or days == cfg.days:
        return cfg
    return replace(cfg, days=days)


def resolve_rotation_config(
    cfg: RotationConfig | None = None,
    environ: Mapping[str, str] | None = None,
) -> RotationConfig:
    """Return config with retention overrides from the environment applied."""
    cfg = cfg or RotationConfig()
    env = os.environ if environ is None else environ
    retention = _env_number(env, ENV_RETENTION_DAYS)
    archive_retention = _env_number(env, ENV_ARCHIVE_RETENTION_DAYS)
    if retention is not None:
        cfg = replace(cfg, retention_days=retention)
    if archive_retention is not None:
        cfg = replace(cfg, archive_retention_days=archive_retention)
    return cfg


def parse_command(value: str | Sequence[str] | None) -> tuple[str, ...]:
    """Normalize a health command given as a string or argv list."""
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(shlex.split(value, posix=os.name != "nt"))
    return tuple(str(v) for v in value)
