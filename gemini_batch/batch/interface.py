"""Abstract job executor interface and the per-job execution context.

Concrete executors (transcription, image generation, image editing)
subclass JobExecutor. The scheduler owns the JobContext lifecycle and
runs deferred cleanups on every exit path.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from gemini_batch.batch.models import Job
from gemini_batch.utils.retry import RemoteCaller

logger = logging.getLogger(__name__)

Cleanup = Callable[[], Awaitable[object]]


@dataclass
class JobContext:
    """Resources private to one running job."""

    job: Job
    caller: RemoteCaller
    _cleanups: list[tuple[str, Cleanup]] = field(default_factory=list)

    def defer(self, cleanup: Cleanup, description: str) -> None:
        """Register a cleanup to run after the job, success or failure."""
        self._cleanups.append((description, cleanup))

    async def run_cleanups(self) -> None:
        """Run deferred cleanups last-in first-out; failures are only logged."""
        while self._cleanups:
            description, cleanup = self._cleanups.pop()
            try:
                await cleanup()
            except Exception:
                logger.warning(
                    "Cleanup '%s' failed for job %s",
                    description,
                    self.job.job_id,
                    exc_info=True,
                    extra={"job_id": self.job.job_id, "stage": "cleanup"},
                )


class JobExecutor(ABC):
    """Abstract base class for the work a batch performs per job.

    Subclasses must implement the execute() method.
    """

    @abstractmethod
    async def execute(self, job: Job, context: JobContext) -> int:
        """Perform the job's work and write its artifact.

        Remote calls go through ``context.caller``; resources that must be
        released afterwards are registered with ``context.defer``.

        Args:
            job: The running job.
            context: The job's private execution context.

        Returns:
            Number of result units produced (segments, images).
        """
