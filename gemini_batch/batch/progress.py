"""Progress-event sinks for observing a batch run.

The scheduler reports started/skipped/succeeded/failed events per job.
Sinks only observe; nothing they do affects scheduling.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from tqdm import tqdm

logger = logging.getLogger(__name__)


class ProgressKind(str, Enum):
    STARTED = "started"
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_final(self) -> bool:
        return self is not ProgressKind.STARTED


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress notification for one job."""

    kind: ProgressKind
    job_id: str
    message: str = ""

    def render(self) -> str:
        label = {
            ProgressKind.STARTED: "Starting",
            ProgressKind.SKIPPED: "Skipped",
            ProgressKind.SUCCEEDED: "Done",
            ProgressKind.FAILED: "Failed",
        }[self.kind]
        if self.message:
            return f"  {label}: {self.job_id} ({self.message})"
        return f"  {label}: {self.job_id}"


class ProgressSink(ABC):
    """Receiver of per-job progress events."""

    @abstractmethod
    def emit(self, event: ProgressEvent) -> None:
        """Handle one progress event."""

    def close(self) -> None:
        """Release any display resources once the batch is done."""


class NullProgressSink(ProgressSink):
    """Discards every event."""

    def emit(self, event: ProgressEvent) -> None:
        return None


class LoggingProgressSink(ProgressSink):
    """Reports events through the module logger."""

    def emit(self, event: ProgressEvent) -> None:
        level = logging.WARNING if event.kind is ProgressKind.FAILED else logging.INFO
        logger.log(
            level,
            event.render().strip(),
            extra={"job_id": event.job_id, "stage": event.kind.value},
        )


class TqdmProgressSink(ProgressSink):
    """Overall progress bar with one printed line per event.

    Args:
        total: Number of jobs in the batch.
        unit: Unit label shown by the bar (e.g. "files", "images").
    """

    def __init__(self, total: int, unit: str = "jobs") -> None:
        self._bar = tqdm(total=total, unit=unit, dynamic_ncols=True)

    def emit(self, event: ProgressEvent) -> None:
        self._bar.write(event.render())
        if event.kind.is_final:
            self._bar.update(1)

    def close(self) -> None:
        self._bar.close()
