"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    def review_runner_health(
        log_path: str,
        days: int = 7,
        retention_days: int = 7,
        archive_retention_days: int = 90,
    ) -> list[dict[str, Any]]:
        """Build a prompt for a periodic runner health review."""
        return [
            {
                "role": "system",
                "content": (
                    "You are an SRE reviewing a self-hosted CI runner. "
                    "Base every statement on tool output; if the data is insufficient, say so."
                ),
            },
            {
                "role": "user",
                "content": (
                    "Review this runner's health. Follow this workflow:\n"
                    f"- Call dashboard_data with log_path={log_path!r} and days={days}.\n"
                    f"- If failedJobs > 0, call collect_job_metrics with the same arguments "
                    "and look at recentJobs for patterns (same job failing, time of day).\n"
                    "- Call rotate_logs with dry_run=true, "
                    f"retention_days={retention_days}, archive_retention_days={archive_retention_days} "
                    "and report how much space a real rotation would free. "
                    "Do not run it with dry_run=false.\n"
                    "- If status is offline or runnerState is offline, say so first.\n\n"
                    "Return this structure:\n"
                    "1) Status (online/idle/offline, uptime)\n"
                    "2) Jobs (total, success rate as a percentage, average duration)\n"
                    "3) Disk (free/total GB, trend from diskPerDay, rotation savings)\n"
                    "4) Warnings reported by the tools\n"
                    "5) Next actions (1-3 bullets)\n"
                ),
            },
        ]
