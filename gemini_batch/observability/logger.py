"""Structured JSON logger for batch runs.

Outputs JSON lines with severity, timestamp, and message fields plus
job-level context (job id, stage, retry attempt and delay, metrics).
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

EXTRA_FIELDS = ("job_id", "stage", "attempt", "delay_seconds", "error", "metrics")

VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO}


class StructuredJsonFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    SEVERITY_MAP: dict[int, str] = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARNING",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            JSON string with severity, timestamp, message, and extra fields.
        """
        log_entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "severity": self.SEVERITY_MAP.get(record.levelno, "DEFAULT"),
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Include extra fields passed via the `extra` kwarg
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])

        return json.dumps(log_entry, default=str)


def setup_logging(verbosity: int = 0, stream: TextIO | None = None) -> None:
    """Configure the root logger with structured JSON output.

    Args:
        verbosity: 0 logs warnings, 1 adds info, 2 or more adds debug.
        stream: Destination stream (stderr by default, keeping stdout
            free for the batch summary).
    """
    root = logging.getLogger()
    root.setLevel(VERBOSITY_LEVELS.get(verbosity, logging.DEBUG))
    for handler in list(root.handlers):
        if isinstance(handler.formatter, StructuredJsonFormatter):
            root.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredJsonFormatter())
    root.addHandler(handler)
    # httpx logs every request at INFO, which would drown job events.
    logging.getLogger("httpx").setLevel(max(root.level, logging.WARNING))
