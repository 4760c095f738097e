"""Data models for jobs, per-job outcomes and batch summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from gemini_batch.utils.errors import ConfigurationError


class JobStatus(str, Enum):
    """Lifecycle of a job; SUCCEEDED, SKIPPED and FAILED are terminal."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.SKIPPED, JobStatus.FAILED)


@dataclass
class Payload:
    """What a job sends to the remote service.

    Either local bytes (``data``, or a ``path`` to read them from) with a
    declared content type, or an already resolved ``remote_uri``.
    """

    mime_type: str
    path: Path | None = None
    data: bytes | None = None
    remote_uri: str | None = None

    def read(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise ValueError("Payload has neither data nor path")
        return self.path.read_bytes()


@dataclass
class Job:
    """One unit of batch work with a single terminal outcome.

    Only the worker executing a job mutates it, and never once terminal.
    """

    job_id: str
    destination: Path
    payload: Payload | None = None
    params: dict[str, Any] = field(default_factory=dict)
    alternates: tuple[Path, ...] = ()
    status: JobStatus = JobStatus.PENDING
    error: str | None = None
    artifacts: int = 0
    attempts: int = 0

    def artifact_paths(self) -> list[Path]:
        return [self.destination, *self.alternates]

    def _transition(self, status: JobStatus) -> None:
        if self.status.is_terminal:
            raise RuntimeError(
                f"Job {self.job_id} is already {self.status.value}; "
                f"cannot become {status.value}"
            )
        self.status = status

    def mark_running(self) -> None:
        self._transition(JobStatus.RUNNING)

    def mark_succeeded(self, artifacts: int = 1) -> None:
        self._transition(JobStatus.SUCCEEDED)
        self.artifacts = artifacts

    def mark_skipped(self) -> None:
        self._transition(JobStatus.SKIPPED)

    def mark_failed(self, error: str) -> None:
        self._transition(JobStatus.FAILED)
        self.error = error

    def outcome(self, duration_seconds: float = 0.0) -> JobOutcome:
        return JobOutcome(
            job_id=self.job_id,
            status=self.status,
            destination=self.destination,
            error=self.error,
            artifacts=self.artifacts,
            attempts=self.attempts,
            duration_seconds=duration_seconds,
        )


@dataclass(frozen=True)
class JobOutcome:
    """Immutable record of a terminal job, keyed by its identity."""

    job_id: str
    status: JobStatus
    destination: Path
    error: str | None = None
    artifacts: int = 0
    attempts: int = 0
    duration_seconds: float = 0.0


@dataclass
class BatchConfig:
    """Scheduling and retry configuration for one batch run."""

    concurrency: int = 2
    start_delay: float = 5.0
    max_attempts: int = 3
    per_call_timeout: float = 600.0
    attempt_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ConfigurationError(
                f"concurrency must be at least 1, got: {self.concurrency}"
            )
        if self.start_delay < 0:
            raise ConfigurationError(
                f"start_delay must not be negative, got: {self.start_delay}"
            )
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be at least 1, got: {self.max_attempts}"
            )
        if self.per_call_timeout <= 0:
            raise ConfigurationError(
                f"per_call_timeout must be positive, got: {self.per_call_timeout}"
            )


@dataclass
class BatchSummary:
    """Aggregated outcomes of a batch run."""

    outcomes: list[JobOutcome]
    wall_time_seconds: float = 0.0

    def _with_status(self, status: JobStatus) -> list[JobOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def succeeded(self) -> list[JobOutcome]:
        return self._with_status(JobStatus.SUCCEEDED)

    @property
    def skipped(self) -> list[JobOutcome]:
        return self._with_status(JobStatus.SKIPPED)

    @property
    def failed(self) -> list[JobOutcome]:
        return self._with_status(JobStatus.FAILED)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def total_artifacts(self) -> int:
        return sum(o.artifacts for o in self.succeeded)

    @property
    def total_attempts(self) -> int:
        return sum(o.attempts for o in self.outcomes)

    @property
    def errors(self) -> list[tuple[str, str]]:
        return [(o.job_id, o.error or "Unknown error") for o in self.failed]

    def get(self, job_id: str) -> JobOutcome | None:
        for outcome in self.outcomes:
            if outcome.job_id == job_id:
                return outcome
        return None
