"""Custom exception hierarchy for the batch execution engine.

All exceptions inherit from BatchError, enabling targeted handling
at job boundaries while preserving specific failure context. Remote
errors carry a ``retryable`` flag consumed by the retry policy.
"""


class BatchError(Exception):
    """Base exception for all batch engine errors."""

    def __init__(self, message: str, job_id: str | None = None) -> None:
        self.job_id = job_id
        super().__init__(message)

    def __str__(self) -> str:
        if self.job_id:
            return f"[job={self.job_id}] {super().__str__()}"
        return super().__str__()


class InputError(BatchError):
    """Raised for bad local input; the job never reaches a remote call."""

    def __init__(
        self, message: str, job_id: str | None = None, path: str | None = None
    ) -> None:
        self.path = path
        super().__init__(message, job_id)


class UnsupportedFormatError(InputError):
    """Raised when a file extension has no known MIME type."""


class ConfigurationError(InputError):
    """Raised for missing credentials or invalid configuration values."""


class TranscodeError(InputError):
    """Raised when ffmpeg audio extraction fails."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        input_path: str | None = None,
    ) -> None:
        self.input_path = input_path
        super().__init__(message, job_id, path=input_path)


class OutputError(BatchError):
    """Raised when writing a job artifact fails."""

    def __init__(
        self, message: str, job_id: str | None = None, path: str | None = None
    ) -> None:
        self.path = path
        super().__init__(message, job_id)


class RemoteError(BatchError):
    """Raised when a call to the remote service fails."""

    retryable = False

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        status: int | None = None,
        operation: str | None = None,
    ) -> None:
        self.status = status
        self.operation = operation
        super().__init__(message, job_id)


class RateLimitedError(RemoteError):
    """HTTP 429 from the remote service."""

    retryable = True


class ServerError(RemoteError):
    """5xx-class response from the remote service."""

    retryable = True


class TransportError(RemoteError):
    """Connection failure or timeout before a response was received."""

    retryable = True


class ClientRequestError(RemoteError):
    """4xx-class response other than rate limiting."""


class PayloadTooLargeError(ClientRequestError):
    """HTTP 413: the request body exceeds what the service accepts."""


class InvalidResponseError(RemoteError):
    """Response body is malformed or lacks an expected field."""


class UploadFailedError(RemoteError):
    """An upload session could not be opened or remote processing failed."""


class ProcessingTimeoutError(RemoteError):
    """An uploaded file never became ACTIVE within the polling budget."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(message, job_id, operation="upload.poll")
