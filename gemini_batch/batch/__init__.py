"""Batch scheduling engine.

Public API:
    BatchScheduler - Bounded, paced, failure-isolated job runner.
    submit_batch   - Run a batch with one shared HTTP client.
    JobExecutor    - Abstract base class for per-job work.
    Job            - One unit of batch work.
    BatchSummary   - Aggregated outcomes of a run.
"""

from gemini_batch.batch.interface import JobContext, JobExecutor
from gemini_batch.batch.models import BatchConfig, BatchSummary, Job, JobStatus
from gemini_batch.batch.scheduler import BatchScheduler, submit_batch

__all__ = [
    "BatchConfig",
    "BatchScheduler",
    "BatchSummary",
    "Job",
    "JobContext",
    "JobExecutor",
    "JobStatus",
    "submit_batch",
]
