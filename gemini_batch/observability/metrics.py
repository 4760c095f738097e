"""Batch metrics collection and reporting.

Provides BatchMetrics dataclass for structured observability data,
StageTimer context manager for measuring job and batch durations,
and log_batch_metrics() for emitting metrics as a structured log record.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from gemini_batch.batch.models import BatchConfig, BatchSummary

logger = logging.getLogger(__name__)


@dataclass
class BatchMetrics:
    """All metrics collected for a single batch run."""

    total_jobs: int
    succeeded: int
    skipped: int
    failed: int
    total_artifacts: int
    total_attempts: int
    wall_time_seconds: float
    concurrency: int
    start_delay_seconds: float
    max_attempts: int

    @classmethod
    def from_summary(cls, summary: BatchSummary, config: BatchConfig) -> BatchMetrics:
        return cls(
            total_jobs=summary.total,
            succeeded=len(summary.succeeded),
            skipped=len(summary.skipped),
            failed=len(summary.failed),
            total_artifacts=summary.total_artifacts,
            total_attempts=summary.total_attempts,
            wall_time_seconds=round(summary.wall_time_seconds, 3),
            concurrency=config.concurrency,
            start_delay_seconds=config.start_delay,
            max_attempts=config.max_attempts,
        )


class StageTimer:
    """Context manager that records wall-clock duration of a stage.

    Captures stage_name, start_time, end_time (as UTC datetimes),
    and duration_seconds (as a monotonic float).

    Usage:
        timer = StageTimer("job")
        with timer:
            do_work()
        print(timer.duration_seconds)
    """

    def __init__(self, stage_name: str) -> None:
        self.stage_name = stage_name
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None
        self.duration_seconds: float = 0.0
        self._mono_start: float = 0.0

    def __enter__(self) -> StageTimer:
        self.start_time = datetime.now(UTC)
        self._mono_start = time.monotonic()
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        elapsed = time.monotonic() - self._mono_start
        self.end_time = datetime.now(UTC)
        self.duration_seconds = elapsed


def log_batch_metrics(metrics: BatchMetrics) -> None:
    """Emit batch metrics as a single structured log record.

    The record carries ``metric_type`` and every BatchMetrics field under
    the ``metrics`` extra, picked up by StructuredJsonFormatter.

    Args:
        metrics: Populated BatchMetrics dataclass.
    """
    logger.info(
        "Batch complete: %d succeeded, %d skipped, %d failed",
        metrics.succeeded,
        metrics.skipped,
        metrics.failed,
        extra={
            "stage": "batch_completion",
            "metrics": {"metric_type": "batch_completion", **asdict(metrics)},
        },
    )
