"""Parse + aggregate in one call."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from pathlib import Path

from .aggregator import MetricsAggregator
from .config import CollectorConfig
from .log_service import iter_events
from .models import AggregateMetrics, LogFile, ParseWarning
from .recognizers import CompositeRecognizer
from .time_window import normalize_ts


@dataclass(frozen=True, slots=True)
class CollectionResult:
    metrics: AggregateMetrics
    files_parsed: int = 0
    warnings: tuple[ParseWarning, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        out = self.metrics.to_dict()
        out["filesParsed"] = self.files_parsed
        out["warnings"] = [{"path": w.path, "reason": w.reason} for w in self.warnings]
        return out


async def collect_metrics(
    log_path: str | Path | None,
    *,
    config: CollectorConfig | None = None,
    now: datetime | None = None,
    recognizer: CompositeRecognizer | None = None,
    report_tz: tzinfo = UTC,
) -> CollectionResult:
    """Stream the lookback window of ``log_path`` into AggregateMetrics.

    Missing paths give zeroed metrics over a zero-filled day axis.
    """
    cfg = config or CollectorConfig()
    now = normalize_ts(now) if now is not None else datetime.now(UTC)
    agg = MetricsAggregator.for_days(
        cfg.days,
        today=now.astimezone(report_tz).date(),
        recent_limit=cfg.recent_limit,
        pairing=cfg.pairing,
        report_tz=report_tz,
    )
    warnings: list[ParseWarning] = []
    files: list[LogFile] = []
    async for event in iter_events(
        log_path,
        days=cfg.days,
        now=now,
        recognizer=recognizer,
        patterns=cfg.patterns,
        archive_subdir=cfg.archive_subdir,
        warnings=warnings,
        files_read=files,
    ):
        agg.add(event)

    unreadable = {w.path for w in warnings if w.skipped}
    return CollectionResult(
        metrics=agg.result(),
        files_parsed=sum(1 for f in files if str(f.path) not in unreadable),
        warnings=tuple(warnings),
    )
