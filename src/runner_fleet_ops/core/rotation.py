"""Log rotation and retention.

Plain log files older than ``retention_days`` are gzip-compressed into the
archive directory and removed; archives older than ``archive_retention_days``
are deleted. Ages come from filesystem metadata on every run, so the engine
keeps no state of its own. Two runs over the same directory must not overlap.
"""

from __future__ import annotations

import gzip
import logging
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import BinaryIO

from .config import RotationConfig
from .models import LogFile, ParseWarning, RotationResult
from .scanning import ARCHIVE_PATTERNS, list_log_files
from .time_window import normalize_ts

logger = logging.getLogger(__name__)

_COPY_CHUNK = 1024 * 1024


class _CountingSink:
    """Write-only file object that only counts bytes (dry-run compression)."""

    def __init__(self) -> None:
        self.size = 0

    def write(self, data: bytes) -> int:
        self.size += len(data)
        return len(data)

    def flush(self) -> None:
        pass


def _gzip_into(src: Path, fileobj: BinaryIO | _CountingSink, *, mtime: int) -> None:
    # Empty header filename and a fixed mtime keep output identical for real and dry runs.
    with src.open("rb") as fin, gzip.GzipFile(filename="", mode="wb", fileobj=fileobj, mtime=mtime) as gz:
        shutil.copyfileobj(fin, gz, _COPY_CHUNK)


def compressed_size(src: Path, *, mtime: int) -> int:
    """Size the archive of ``src`` would have, without writing anything."""
    sink = _CountingSink()
    _gzip_into(src, sink, mtime=mtime)
    return sink.size


@dataclass(slots=True)
class _Tally:
    scanned: int = 0
    compressed: int = 0
    deleted: int = 0
    bytes_freed: int = 0
    warnings: list[ParseWarning] = field(default_factory=list)

    def warn(self, path: Path, reason: str) -> None:
        logger.warning("Rotation skipped %s: %s", path, reason)
        self.warnings.append(ParseWarning(path=str(path), reason=reason))


class RotationEngine:
    """Compress aged logs into dated archives and purge expired archives."""

    def __init__(self, config: RotationConfig | None = None) -> None:
        self.config = config or RotationConfig()

    def archive_dir(self, log_dir: str | Path) -> Path:
        return Path(log_dir) / self.config.archive_subdir

    def scan(self, log_dir: str | Path) -> tuple[list[LogFile], list[LogFile]]:
        """Return (plain files, archives) currently under ``log_dir``."""
        root = Path(log_dir)
        plain = [f for f in list_log_files(root, self.config.patterns) if not f.is_archive]
        archives = list_log_files(root, ARCHIVE_PATTERNS)
        archives += list_log_files(self.archive_dir(root), ARCHIVE_PATTERNS)
        return plain, archives

    @staticmethod
    def archive_name(log_file: LogFile, *, taken: set[str]) -> str:
        """Dated archive name, ``<stem>-<YYYYMMDD><suffix>.gz``, unique against ``taken``."""
        stem = log_file.path.stem
        suffix = log_file.path.suffix
        day = log_file.last_modified.strftime("%Y%m%d")
        n = 0
        while True:
            tag = f"{day}-{n}" if n else day
            name = f"{stem}-{tag}{suffix}.gz"
            if name not in taken:
                return name
            n += 1

    def run(
        self,
        log_dir: str | Path,
        *,
        dry_run: bool = False,
        now: datetime | None = None,
    ) -> RotationResult:
        """Run one rotation pass and report what was (or would be) done.

        A missing ``log_dir`` yields an empty result. Failure to create the
        archive directory raises ``OSError``; any other per-file failure is
        recorded as a warning and the pass continues.
        """
        root = Path(log_dir)
        if not root.is_dir():
            logger.info("Log directory %s does not exist; nothing to rotate", root)
            return RotationResult(dry_run=dry_run)

        now = normalize_ts(now) if now is not None else datetime.now(UTC)
        cfg = self.config
        plain, archives = self.scan(root)
        tally = _Tally(scanned=len(plain) + len(archives))

        # Archives are classified before compression so new ones are never purged in the same run.
        expired = [a for a in archives if a.age_days(now) >= cfg.archive_retention_days]
        aged = [f for f in plain if f.age_days(now) >= cfg.retention_days]

        archive_dir = self.archive_dir(root)
        if aged and not dry_run:
            archive_dir.mkdir(parents=True, exist_ok=True)

        taken = {p.name for p in archive_dir.glob("*")} if archive_dir.is_dir() else set()
        for log_file in aged:
            self._compress(log_file, archive_dir, taken=taken, tally=tally, dry_run=dry_run)

        for archive in expired:
            self._delete(archive, tally=tally, dry_run=dry_run)

        result = RotationResult(
            files_scanned=tally.scanned,
            files_compressed=tally.compressed,
            files_deleted=tally.deleted,
            bytes_freed=tally.bytes_freed,
            dry_run=dry_run,
            warnings=tuple(tally.warnings),
        )
        logger.info(
            "%sRotation of %s: scanned=%d compressed=%d deleted=%d freed=%d bytes",
            "[dry-run] " if dry_run else "",
            root,
            result.files_scanned,
            result.files_compressed,
            result.files_deleted,
            result.bytes_freed,
        )
        return result

    def _compress(
        self,
        log_file: LogFile,
        archive_dir: Path,
        *,
        taken: set[str],
        tally: _Tally,
        dry_run: bool,
    ) -> None:
        name = self.archive_name(log_file, taken=taken)
        target = archive_dir / name
        mtime = int(log_file.last_modified.timestamp())

        if dry_run:
            try:
                size = compressed_size(log_file.path, mtime=mtime)
            except OSError as exc:
                tally.warn(log_file.path, f"compress failed: {exc}")
                return
            taken.add(name)
            logger.info("[dry-run] Would compress %s -> %s", log_file.path, target)
            tally.compressed += 1
            tally.bytes_freed += max(0, log_file.size_bytes - size)
            return

        try:
            with _staged(target) as part:
                with part.open("wb") as out:
                    _gzip_into(log_file.path, out, mtime=mtime)
                part.replace(target)
        except OSError as exc:
            tally.warn(log_file.path, f"compress failed: {exc}")
            return

        taken.add(name)
        try:
            log_file.path.unlink()
        except OSError as exc:
            # Keep exactly one copy: roll the archive back.
            target.unlink(missing_ok=True)
            taken.discard(name)
            tally.warn(log_file.path, f"cannot remove original: {exc}")
            return

        archive_size = target.stat().st_size
        logger.info("Compressed %s -> %s", log_file.path, target)
        tally.compressed += 1
        tally.bytes_freed += max(0, log_file.size_bytes - archive_size)

    def _delete(self, archive: LogFile, *, tally: _Tally, dry_run: bool) -> None:
        if dry_run:
            logger.info("[dry-run] Would delete expired archive %s", archive.path)
            tally.deleted += 1
            tally.bytes_freed += archive.size_bytes
            return
        try:
            archive.path.unlink()
        except OSError as exc:
            tally.warn(archive.path, f"delete failed: {exc}")
            return
        logger.info("Deleted expired archive %s", archive.path)
        tally.deleted += 1
        tally.bytes_freed += archive.size_bytes


@contextmanager
def _staged(target: Path) -> Iterator[Path]:
    """Yield a temporary sibling path; remove it if the block fails."""
    part = target.with_name(target.name + ".part")
    try:
        yield part
    except BaseException:
        part.unlink(missing_ok=True)
        raise
    # after a successful replace() the part file no longer exists
    part.unlink(missing_ok=True)


def rotate_logs(
    log_dir: str | Path,
    *,
    retention_days: float = 7,
    archive_retention_days: float = 90,
    dry_run: bool = False,
    now: datetime | None = None,
) -> RotationResult:
    """Convenience wrapper: one pass with the given thresholds."""
    engine = RotationEngine(
        RotationConfig(retention_days=retention_days, archive_retention_days=archive_retention_days)
    )
    return engine.run(log_dir, dry_run=dry_run, now=now)
