"""Candidate log roots for the supported runner installation layouts.

The locator never parses anything; it only proposes directories. The caller
passes platform and home directory so nothing here reads the environment.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

RUNNER_DIR = "actions-runner"
DIAG_DIR = "_diag"

Strategy = Callable[[Path], list[Path]]


def _linux_roots(home: Path) -> list[Path]:
    roots = [home / RUNNER_DIR / DIAG_DIR, Path("/opt") / RUNNER_DIR / DIAG_DIR]
    roots.extend(sorted(Path("/home").glob(f"*/{RUNNER_DIR}/{DIAG_DIR}")))
    return roots


def _darwin_roots(home: Path) -> list[Path]:
    roots = [home / RUNNER_DIR / DIAG_DIR]
    roots.extend(sorted(Path("/Users").glob(f"*/{RUNNER_DIR}/{DIAG_DIR}")))
    return roots


def _windows_roots(home: Path) -> list[Path]:
    return [
        Path("C:/") / RUNNER_DIR / DIAG_DIR,
        home / RUNNER_DIR / DIAG_DIR,
    ]


STRATEGIES: dict[str, Strategy] = {
    "linux": _linux_roots,
    "darwin": _darwin_roots,
    "win32": _windows_roots,
}


def platform_key(platform: str) -> str:
    """Map a ``sys.platform`` value onto a strategy key."""
    if platform.startswith("win") or platform == "cygwin":
        return "win32"
    if platform == "darwin":
        return "darwin"
    return "linux"


def candidate_roots(
    *,
    platform: str,
    home: str | Path,
    extra: Sequence[str | Path] = (),
    strategies: dict[str, Strategy] | None = None,
) -> list[Path]:
    """Return candidate log roots in priority order (caller extras first)."""
    table = strategies or STRATEGIES
    strategy = table.get(platform_key(platform), _linux_roots)
    roots = [Path(p) for p in extra]
    roots.extend(strategy(Path(home)))
    return _dedupe(roots)


def locate_log_dirs(
    *,
    platform: str,
    home: str | Path,
    extra: Sequence[str | Path] = (),
    strategies: dict[str, Strategy] | None = None,
) -> list[Path]:
    """Return existing candidate roots, in priority order."""
    return [
        p
        for p in candidate_roots(platform=platform, home=home, extra=extra, strategies=strategies)
        if p.is_dir()
    ]


def _dedupe(paths: Iterable[Path]) -> list[Path]:
    seen: set[str] = set()
    out: list[Path] = []
    for p in paths:
        key = str(p)
        if key in seen:
            continue
        seen.add(key)
        out.append(p)
    return out
