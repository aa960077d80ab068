"""Implementation behind the ``locate_logs`` tool."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from runner_fleet_ops.core.locator import candidate_roots, platform_key


def locate_logs_impl(
    *,
    extra: Sequence[str] | None = None,
    platform: str | None = None,
    home: str | None = None,
) -> dict[str, Any]:
    """List candidate runner log directories and which of them exist."""
    plat = platform or sys.platform
    roots = candidate_roots(
        platform=plat,
        home=home or Path.home(),
        extra=[p for p in (extra or []) if p and p.strip()],
    )
    candidates = [{"path": str(p), "exists": p.is_dir()} for p in roots]
    return {
        "platform": platform_key(plat),
        "candidates": candidates,
        "found": [c["path"] for c in candidates if c["exists"]],
    }
