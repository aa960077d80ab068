"""Directory scanning: turn log directories into LogFile values."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from .models import LogFile
from .time_window import filename_timestamp

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES = frozenset({".gz", ".zip"})
ARCHIVE_PATTERNS: tuple[str, ...] = ("*.gz", "*.zip")


def is_archive(path: Path) -> bool:
    """Compressed files are archives; they are read but never re-compressed."""
    return path.suffix.lower() in ARCHIVE_SUFFIXES


def stat_log_file(path: Path) -> LogFile:
    """Build a LogFile from filesystem metadata (raises OSError)."""
    st = path.stat()
    return LogFile(
        path=path,
        last_modified=datetime.fromtimestamp(st.st_mtime, tz=UTC),
        size_bytes=st.st_size,
        is_archive=is_archive(path),
        name_timestamp=filename_timestamp(path.name),
    )


def list_log_files(directory: str | Path, patterns: Sequence[str]) -> list[LogFile]:
    """List regular files directly under ``directory`` matching any pattern.

    Missing directories yield an empty list. Files that vanish or cannot be
    stat'ed between listing and inspection are skipped.
    """
    root = Path(directory)
    if not root.is_dir():
        return []

    seen: set[Path] = set()
    out: list[LogFile] = []
    for pattern in patterns:
        for path in sorted(root.glob(pattern)):
            if path in seen:
                continue
            seen.add(path)
            try:
                if not path.is_file():
                    continue
                out.append(stat_log_file(path))
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", path, exc)
    return out


def sort_key(f: LogFile) -> tuple[datetime, str]:
    """Chronological order: embedded name timestamp, else modification time."""
    return (f.name_timestamp or f.last_modified, f.path.name)


def select_in_window(files: Iterable[LogFile], *, since: datetime) -> list[LogFile]:
    """Keep files that may hold entries at or after ``since``, oldest first.

    A file qualifies when its name timestamp is inside the window, when it
    was modified inside the window, or when its name carries no timestamp.
    """
    selected = [
        f
        for f in files
        if f.name_timestamp is None or f.name_timestamp >= since or f.last_modified >= since
    ]
    return sorted(selected, key=sort_key)
