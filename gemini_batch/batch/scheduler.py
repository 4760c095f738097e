"""Batch scheduler: bounded concurrency, start pacing, per-job isolation.

Jobs start in input order, each after acquiring a unit of the admission
limiter, with a fixed start-to-start delay between them. Every job ends
in exactly one outcome; a job's failure never aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol

import httpx

from gemini_batch.batch.idempotency import should_skip
from gemini_batch.batch.interface import JobContext, JobExecutor
from gemini_batch.batch.models import BatchConfig, BatchSummary, Job, JobOutcome
from gemini_batch.batch.progress import (
    NullProgressSink,
    ProgressEvent,
    ProgressKind,
    ProgressSink,
)
from gemini_batch.observability.metrics import (
    BatchMetrics,
    StageTimer,
    log_batch_metrics,
)
from gemini_batch.remote.transport import build_http_client
from gemini_batch.utils.retry import RemoteCaller, RetryPolicy

logger = logging.getLogger(__name__)


class AdmissionLimiter(Protocol):
    """Counting gate; asyncio.Semaphore satisfies it."""

    async def acquire(self) -> object: ...

    def release(self) -> None: ...


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class BatchScheduler:
    """Run jobs through an executor under a BatchConfig.

    Args:
        config: Concurrency, pacing and retry settings.
        executor: Work performed for each non-skipped job.
        progress: Observer for per-job progress events.
        limiter: Admission limiter; defaults to a semaphore sized
            ``config.concurrency``.
        policy: Retry policy handed to each job's RemoteCaller.
    """

    def __init__(
        self,
        config: BatchConfig,
        executor: JobExecutor,
        progress: ProgressSink | None = None,
        limiter: AdmissionLimiter | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.config = config
        self._executor = executor
        self._progress = progress or NullProgressSink()
        self._limiter = limiter or asyncio.Semaphore(config.concurrency)
        self._policy = policy or RetryPolicy()

    def _emit(self, kind: ProgressKind, job: Job, message: str = "") -> None:
        self._progress.emit(ProgressEvent(kind=kind, job_id=job.job_id, message=message))

    def _new_caller(self) -> RemoteCaller:
        return RemoteCaller(
            policy=self._policy,
            max_attempts=self.config.max_attempts,
            attempt_timeout=self.config.attempt_timeout,
        )

    async def _run_job(self, job: Job) -> None:
        if should_skip(job):
            job.mark_skipped()
            self._emit(ProgressKind.SKIPPED, job, "output already exists")
            return

        job.mark_running()
        self._emit(ProgressKind.STARTED, job)
        context = JobContext(job=job, caller=self._new_caller())
        try:
            artifacts = await self._executor.execute(job, context)
        except Exception as exc:
            job.mark_failed(_describe(exc))
            logger.warning(
                "Job %s failed: %s",
                job.job_id,
                job.error,
                extra={"job_id": job.job_id, "error": job.error},
            )
            self._emit(ProgressKind.FAILED, job, job.error or "")
        else:
            job.mark_succeeded(artifacts)
            logger.info(
                "Job %s succeeded (%d artifacts)",
                job.job_id,
                artifacts,
                extra={"job_id": job.job_id},
            )
            self._emit(ProgressKind.SUCCEEDED, job, f"{artifacts} results")
        finally:
            job.attempts = context.caller.attempts
            await context.run_cleanups()

    async def _worker(self, job: Job, outcomes: list[JobOutcome]) -> None:
        timer = StageTimer("job")
        try:
            with timer:
                await self._run_job(job)
        except Exception as exc:
            logger.error(
                "Worker crashed for job %s",
                job.job_id,
                exc_info=True,
                extra={"job_id": job.job_id},
            )
            if not job.status.is_terminal:
                job.mark_failed(f"Unexpected error: {_describe(exc)}")
                self._emit(ProgressKind.FAILED, job, job.error or "")
        finally:
            self._limiter.release()
            if not job.status.is_terminal:
                job.mark_failed("Worker stopped before the job finished")
            outcomes.append(job.outcome(timer.duration_seconds))

    async def run(self, jobs: Sequence[Job]) -> BatchSummary:
        """Execute every job and return the aggregated summary.

        Never raises for job-level failures; they are captured in outcomes.
        """
        outcomes: list[JobOutcome] = []
        tasks: list[asyncio.Task] = []
        timer = StageTimer("batch")

        with timer:
            for index, job in enumerate(jobs):
                await self._limiter.acquire()
                tasks.append(asyncio.create_task(self._worker(job, outcomes)))
                if index < len(jobs) - 1 and self.config.start_delay > 0:
                    await asyncio.sleep(self.config.start_delay)

            results = await asyncio.gather(*tasks, return_exceptions=True)

        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Worker for job %s ended with %r",
                    job.job_id,
                    result,
                    extra={"job_id": job.job_id},
                )

        summary = BatchSummary(outcomes=outcomes, wall_time_seconds=timer.duration_seconds)
        log_batch_metrics(BatchMetrics.from_summary(summary, self.config))
        return summary


async def submit_batch(
    jobs: Sequence[Job],
    executor_factory: Callable[[httpx.AsyncClient], JobExecutor],
    concurrency: int = 2,
    start_delay: float = 5.0,
    max_attempts: int = 3,
    per_call_timeout: float = 600.0,
    progress: ProgressSink | None = None,
    policy: RetryPolicy | None = None,
) -> BatchSummary:
    """Run a batch with one HTTP client shared by every job.

    Args:
        jobs: Jobs in the order they should start.
        executor_factory: Builds the executor around the shared client.
        concurrency: Maximum jobs holding an admission slot at once.
        start_delay: Seconds between consecutive job starts.
        max_attempts: Attempts per remote call (1 disables retries).
        per_call_timeout: Timeout in seconds for each HTTP request.
        progress: Observer for per-job progress events.
        policy: Retry policy; defaults to RetryPolicy().

    Returns:
        BatchSummary with one outcome per job.
    """
    config = BatchConfig(
        concurrency=concurrency,
        start_delay=start_delay,
        max_attempts=max_attempts,
        per_call_timeout=per_call_timeout,
    )
    async with build_http_client(config.per_call_timeout) as client:
        scheduler = BatchScheduler(
            config,
            executor_factory(client),
            progress=progress,
            policy=policy,
        )
        return await scheduler.run(jobs)
