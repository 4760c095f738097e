"""Skip jobs whose destination artifact already exists.

Makes batch runs restartable: re-running after a partial failure only
re-attempts jobs that never produced output.
"""

import logging

from gemini_batch.batch.models import Job

logger = logging.getLogger(__name__)


def should_skip(job: Job) -> bool:
    """Return True if any of the job's artifact paths already exists."""
    for path in job.artifact_paths():
        if path.exists():
            logger.debug("Artifact %s exists; skipping job %s", path, job.job_id)
            return True
    return False
