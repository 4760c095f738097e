"""Tests for gemini_batch.observability.metrics module."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict
from pathlib import Path

import pytest

from gemini_batch.batch.models import BatchConfig, BatchSummary, JobOutcome, JobStatus
from gemini_batch.observability.logger import StructuredJsonFormatter
from gemini_batch.observability.metrics import (
    BatchMetrics,
    StageTimer,
    log_batch_metrics,
)


def _make_batch_metrics(**overrides) -> BatchMetrics:
    """Create a BatchMetrics with sensible defaults, applying any overrides."""
    defaults = {
        "total_jobs": 5,
        "succeeded": 3,
        "skipped": 1,
        "failed": 1,
        "total_artifacts": 12,
        "total_attempts": 6,
        "wall_time_seconds": 42.5,
        "concurrency": 2,
        "start_delay_seconds": 5.0,
        "max_attempts": 3,
    }
    defaults.update(overrides)
    return BatchMetrics(**defaults)


class TestBatchMetrics:
    """Tests for BatchMetrics dataclass."""

    def test_serializes_all_fields_to_dict(self):
        metrics = _make_batch_metrics()
        d = asdict(metrics)
        assert d["total_jobs"] == 5
        assert d["wall_time_seconds"] == 42.5
        assert len(d) == 10

    def test_from_summary(self):
        summary = BatchSummary(
            outcomes=[
                JobOutcome("a", JobStatus.SUCCEEDED, Path("a"), artifacts=2, attempts=1),
                JobOutcome("b", JobStatus.FAILED, Path("b"), error="x", attempts=3),
                JobOutcome("c", JobStatus.SKIPPED, Path("c")),
            ],
            wall_time_seconds=1.23456,
        )
        metrics = BatchMetrics.from_summary(summary, BatchConfig(concurrency=4, start_delay=0))
        assert metrics.total_jobs == 3
        assert metrics.succeeded == 1
        assert metrics.failed == 1
        assert metrics.skipped == 1
        assert metrics.total_artifacts == 2
        assert metrics.total_attempts == 4
        assert metrics.wall_time_seconds == 1.235
        assert metrics.concurrency == 4
        assert metrics.start_delay_seconds == 0


class TestStageTimer:
    """Tests for StageTimer context manager."""

    def test_measures_duration(self):
        timer = StageTimer("job")
        with timer:
            time.sleep(0.01)
        assert timer.duration_seconds >= 0.01
        assert timer.start_time is not None
        assert timer.end_time is not None
        assert timer.end_time >= timer.start_time

    def test_records_duration_when_body_raises(self):
        timer = StageTimer("job")
        with pytest.raises(ValueError):
            with timer:
                raise ValueError("boom")
        assert timer.end_time is not None


class TestLogBatchMetrics:
    """Tests for the structured metrics record."""

    def test_emits_single_record_with_metrics(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger="gemini_batch.observability.metrics"):
            log_batch_metrics(_make_batch_metrics())

        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.stage == "batch_completion"
        assert record.metrics["metric_type"] == "batch_completion"
        assert record.metrics["failed"] == 1
        assert "3 succeeded, 1 skipped, 1 failed" in record.getMessage()

    def test_formats_as_json_line(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger="gemini_batch.observability.metrics"):
            log_batch_metrics(_make_batch_metrics(total_jobs=7))

        parsed = json.loads(StructuredJsonFormatter().format(caplog.records[0]))
        assert parsed["metrics"]["total_jobs"] == 7
        assert parsed["stage"] == "batch_completion"
