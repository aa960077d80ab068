"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

import asyncio
import gzip
import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from runner_fleet_ops.core.dashboard import DashboardSnapshot

ALLOWED_FILE_SUFFIXES = {".log", ".txt"}
BASE_DIR_ENV = "RUNNER_OPS_BASE_DIR"
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "replace"

SAMPLE_LOG = (
    "[2024-01-15 10:30:00Z INFO Worker] Running job: Build-123\n"
    "[2024-01-15 10:31:12Z WARN Worker] ##[warning]Node.js 16 actions are deprecated\n"
    "[2024-01-15 10:35:00Z INFO JobDispatcher] Job Build-123 completed with result: Succeeded\n"
    "[2024-01-15 11:02:40Z INFO Worker] Running job: Test-124\n"
    "[2024-01-15 11:09:05Z ERROR Worker] ##[error]Process completed with exit code 1.\n"
    "[2024-01-15 11:09:06Z INFO JobDispatcher] Job Test-124 completed with result: Failed\n"
)


def _base_dir() -> Path:
    """Return the resolved base directory for file resources."""
    raw = os.getenv(BASE_DIR_ENV, os.getcwd())
    return Path(raw).resolve()


def _safe_resolve(path: str) -> Path:
    """Resolve a path under the configured base directory."""
    base = _base_dir()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if base not in p.parents and p != base:
        raise ValueError("Path escapes base dir")
    return p


def _allowed_suffix(path: Path) -> str:
    """Return the effective suffix for allowlist checks (``x.log.gz`` -> ``.log``)."""
    suffix = path.suffix.lower()
    if suffix == ".gz":
        suffix = path.with_suffix("").suffix.lower()
    return suffix


def resolve_resource_path(path: str) -> Path:
    """Resolve and validate a log resource path."""
    resolved = _safe_resolve(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"File not found: {resolved}")
    if _allowed_suffix(resolved) not in ALLOWED_FILE_SUFFIXES:
        allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
        raise ValueError(f"File type not allowed. Allowed: {allowed} (optionally .gz).")
    return resolved


def read_text(path: Path) -> str:
    """Read text from a file, supporting optional gzip compression."""
    if path.suffix.lower() == ".gz":
        with gzip.open(path, mode="rt", encoding=TEXT_ENCODING, errors=TEXT_ERRORS) as f:
            return f.read()
    return path.read_text(encoding=TEXT_ENCODING, errors=TEXT_ERRORS)


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://runner-ops/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
        return (
            "Resources:\n"
            "- app://runner-ops/help\n"
            "- app://runner-ops/examples/sample-log\n"
            "- app://runner-ops/schemas/dashboard-snapshot\n"
            f"- log://{{path}} (restricted to {BASE_DIR_ENV}; allowed: {allowed}, .gz)\n"
            "\nTools: dashboard_data, collect_job_metrics, rotate_logs (dry run by default), locate_logs\n"
            f"\nBase directory: {_base_dir()}\n"
        )

    @mcp.resource("app://runner-ops/examples/sample-log")
    def sample_log() -> str:
        """Return a tiny runner log for demos and tests."""
        return SAMPLE_LOG

    @mcp.resource("app://runner-ops/schemas/dashboard-snapshot")
    def dashboard_schema() -> dict[str, Any]:
        """Return the JSON schema of the dashboard snapshot."""
        return DashboardSnapshot.model_json_schema(by_alias=True)

    @mcp.resource("log://{path}")
    async def read_log(path: str) -> str:
        """Return the full contents of a runner log (plain or .gz)."""
        p = resolve_resource_path(path)
        return await asyncio.to_thread(read_text, p)
