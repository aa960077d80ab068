"""Log loading and event extraction.

This module is the main integration point that reads rotating runner log
files (plain or gzip) and yields recognized events.
"""

from __future__ import annotations

import gzip
import logging
from collections.abc import AsyncIterator, Hashable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import aiofiles
from aiofiles.threadpool import wrap

from .config import CollectorConfig
from .models import LogEvent, LogFile, ParseWarning
from .recognizers import CompositeRecognizer, default_recognizer
from .scanning import list_log_files, select_in_window, stat_log_file
from .time_window import lookback_window

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _open_text(path: Path, *, encoding: str, decode_errors: str):
    """Open a log file for async text reading (plain or gzip)."""
    if path.suffix.lower() == ".gz":
        f = gzip.open(path, mode="rt", encoding=encoding, errors=decode_errors)
        af = wrap(f)
        try:
            yield af
        finally:
            await af.close()
    else:
        async with aiofiles.open(path, encoding=encoding, errors=decode_errors) as f:
            yield f


@dataclass(slots=True)
class ParseResult:
    """Events from one parse pass plus the files read and skipped."""

    events: list[LogEvent] = field(default_factory=list)
    files_parsed: int = 0
    warnings: list[ParseWarning] = field(default_factory=list)


def _dedupe_key(e: LogEvent) -> Hashable:
    if e.timestamp_estimated:
        # Fallback timestamps are shared by a whole file; keep each line.
        return (e.kind, e.timestamp, e.job_name, e.outcome, e.message, e.source, e.line_no)
    return (e.kind, e.timestamp, e.job_name, e.outcome, e.message)


def candidate_files(
    log_dir: str | Path,
    *,
    since: datetime,
    patterns: Sequence[str],
    archive_subdir: str | None,
) -> list[LogFile]:
    """Return the files a parse over ``[since, now)`` should read, oldest first."""
    root = Path(log_dir)
    files = list_log_files(root, patterns)
    if archive_subdir:
        files.extend(list_log_files(root / archive_subdir, patterns))
    return select_in_window(files, since=since)


async def iter_file_events(
    log_file: LogFile,
    *,
    recognizer: CompositeRecognizer,
    encoding: str = "utf-8",
    decode_errors: str = "replace",
    warnings: list[ParseWarning] | None = None,
) -> AsyncIterator[LogEvent]:
    """Yield events from one file in line order.

    The file is read completely before anything is yielded, so an unreadable
    file contributes nothing. A truncated gzip stream keeps the lines read
    before the truncation.
    """
    path = log_file.path
    source = str(path)
    events: list[LogEvent] = []
    line_no = 0
    try:
        async with _open_text(path, encoding=encoding, decode_errors=decode_errors) as f:
            async for line in f:
                line_no += 1
                event = recognizer.parse(
                    line_no,
                    line.rstrip("\r\n"),
                    source=source,
                    fallback_ts=log_file.last_modified,
                )
                if event is not None:
                    events.append(event)
    except (EOFError, gzip.BadGzipFile) as exc:
        if line_no == 0:
            logger.warning("Skipping corrupt archive %s: %s", path, exc)
            if warnings is not None:
                warnings.append(ParseWarning(path=source, reason=f"corrupt archive: {exc}"))
            return
        logger.warning("Truncated archive %s after %d lines: %s", path, line_no, exc)
        if warnings is not None:
            warnings.append(ParseWarning(path=source, reason=f"truncated archive: {exc}", skipped=False))
    except OSError as exc:
        logger.warning("Skipping unreadable log file %s: %s", path, exc)
        if warnings is not None:
            warnings.append(ParseWarning(path=source, reason=str(exc)))
        return

    for event in events:
        yield event


async def iter_events(
    log_dir: str | Path | None,
    *,
    days: int = 7,
    now: datetime | None = None,
    recognizer: CompositeRecognizer | None = None,
    patterns: Sequence[str] | None = None,
    archive_subdir: str | None = "archive",
    encoding: str = "utf-8",
    decode_errors: str = "replace",
    warnings: list[ParseWarning] | None = None,
    files_read: list[LogFile] | None = None,
) -> AsyncIterator[LogEvent]:
    """Yield events from every log file in the lookback window.

    ``log_dir`` may also name a single file. A missing path yields nothing.
    Per-file failures are appended to ``warnings`` and never abort the pass.
    An event already seen in an earlier file (overlapping rotated copies) is
    emitted once; repeats inside one file are kept.
    """
    if log_dir is None:
        return
    root = Path(log_dir)
    since, _ = lookback_window(days, now=now)
    recognizer = recognizer or default_recognizer()
    patterns = tuple(patterns) if patterns else CollectorConfig().patterns

    if root.is_file():
        # A single file is read regardless of its name or age.
        try:
            files = [stat_log_file(root)]
        except OSError as exc:
            logger.warning("Cannot stat %s: %s", root, exc)
            if warnings is not None:
                warnings.append(ParseWarning(path=str(root), reason=str(exc)))
            return
    elif root.is_dir():
        files = candidate_files(root, since=since, patterns=patterns, archive_subdir=archive_subdir)
    else:
        logger.debug("Log path %s does not exist; nothing to parse", root)
        return

    seen: set[Hashable] = set()
    for log_file in files:
        if files_read is not None:
            files_read.append(log_file)
        file_keys: set[Hashable] = set()
        async for event in iter_file_events(
            log_file,
            recognizer=recognizer,
            encoding=encoding,
            decode_errors=decode_errors,
            warnings=warnings,
        ):
            key = _dedupe_key(event)
            if key in seen:
                continue
            file_keys.add(key)
            yield event
        seen |= file_keys


async def collect_events(
    log_dir: str | Path | None,
    *,
    config: CollectorConfig | None = None,
    now: datetime | None = None,
    recognizer: CompositeRecognizer | None = None,
) -> ParseResult:
    """Collect iter_events into a ParseResult."""
    cfg = config or CollectorConfig()
    result = ParseResult()
    files: list[LogFile] = []
    async for event in iter_events(
        log_dir,
        days=cfg.days,
        now=now,
        recognizer=recognizer,
        patterns=cfg.patterns,
        archive_subdir=cfg.archive_subdir,
        warnings=result.warnings,
        files_read=files,
    ):
        result.events.append(event)
    unreadable = {w.path for w in result.warnings if w.skipped}
    result.files_parsed = sum(1 for f in files if str(f.path) not in unreadable)
    return result
