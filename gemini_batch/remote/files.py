"""Resumable upload client for the Gemini File API.

Large payloads are transferred through an upload session before they
can be referenced in a request: start (obtain a session handle) ->
transfer (one finalize-marked upload) -> poll (wait for ACTIVE) ->
release (delete after use). Each UploadSession is owned by a single job.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum

import httpx

from gemini_batch.remote.interface import FileInfo, extract_file_id
from gemini_batch.remote.transport import parse_json, raise_for_remote_status, send
from gemini_batch.utils.errors import (
    ProcessingTimeoutError,
    RemoteError,
    UploadFailedError,
)

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_URL = "https://generativelanguage.googleapis.com/upload/v1beta/files"
DEFAULT_FILES_URL = "https://generativelanguage.googleapis.com/v1beta/files"
PROCESSING_TIMEOUT_SECONDS = 300.0
POLL_INTERVAL_SECONDS = 2.0


class UploadState(str, Enum):
    """Lifecycle states of an upload session."""

    UPLOADING = "UPLOADING"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.ACTIVE, UploadState.FAILED, UploadState.TIMED_OUT)


def _state_from_remote(remote_state: str) -> UploadState:
    if remote_state == "ACTIVE":
        return UploadState.ACTIVE
    if remote_state == "FAILED":
        return UploadState.FAILED
    return UploadState.PROCESSING


class UploadSession:
    """One payload's journey through the resumable upload protocol.

    Args:
        files: FileApiClient used for every leg of the session.
        data: Payload bytes.
        mime_type: Declared content type of the payload.
        display_name: Human-readable name recorded with the remote file.
    """

    def __init__(
        self,
        files: FileApiClient,
        data: bytes,
        mime_type: str,
        display_name: str,
    ) -> None:
        self._files = files
        self.data = data
        self.mime_type = mime_type
        self.display_name = display_name
        self.state = UploadState.UPLOADING
        self.upload_url: str | None = None
        self.file: FileInfo | None = None
        self.status_fetches = 0
        self.started_at = time.monotonic()
        self.finished_at: float | None = None

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def _finish(self, state: UploadState) -> UploadState:
        self.state = state
        if state.is_terminal:
            self.finished_at = time.monotonic()
        return state

    async def start(self) -> str:
        """Request a transfer session and return its opaque handle.

        Raises:
            UploadFailedError: If the response carries no session handle.
            RemoteError: Classified failure of the start request.
        """
        self.upload_url = await self._files.start_upload(
            len(self.data), self.mime_type, self.display_name
        )
        return self.upload_url

    async def transfer(self) -> UploadState:
        """Send the full payload in one finalize-marked request."""
        if self.upload_url is None:
            raise UploadFailedError(
                "Upload session was not started", operation="upload.transfer"
            )
        self.file = await self._files.upload_bytes(self.upload_url, self.data)
        return self._finish(_state_from_remote(self.file.state))

    async def poll(self) -> UploadState:
        """Fetch file status until ACTIVE, FAILED or the timeout budget runs out.

        Returns:
            The terminal state reached. TIMED_OUT means the budget was
            exceeded; no status is fetched after that.
        """
        if self.state is not UploadState.PROCESSING or self.file is None:
            return self.state

        poll_start = time.monotonic()
        while True:
            self.file = await self._files.get_file_info(self.file.name)
            self.status_fetches += 1
            state = _state_from_remote(self.file.state)
            if state is not UploadState.PROCESSING:
                logger.debug("File %s is now %s", self.file.name, state.value)
                return self._finish(state)

            if time.monotonic() - poll_start > self._files.processing_timeout:
                logger.warning(
                    "File %s still %s after %.0fs",
                    self.file.name,
                    self.file.state,
                    self._files.processing_timeout,
                )
                return self._finish(UploadState.TIMED_OUT)

            logger.debug(
                "File %s is in state %s, waiting...", self.file.name, self.file.state
            )
            await asyncio.sleep(self._files.poll_interval)

    async def release(self) -> bool:
        """Delete the remote file. Failures are logged, never raised.

        Returns:
            True if the remote file was deleted.
        """
        if self.file is None:
            return False
        try:
            await self._files.delete_file(self.file.name)
        except RemoteError as exc:
            logger.warning("Failed to delete remote file %s: %s", self.file.name, exc)
            return False
        return True


class FileApiClient:
    """Client for the Gemini File API resumable upload protocol.

    Args:
        client: Shared httpx client owned by the batch run.
        api_key: Gemini API key.
        poll_interval: Seconds between status fetches while processing.
        processing_timeout: Wall-clock budget for reaching ACTIVE.
        upload_url: Upload endpoint (overridable for tests).
        files_url: File resource endpoint (overridable for tests).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        processing_timeout: float = PROCESSING_TIMEOUT_SECONDS,
        upload_url: str = DEFAULT_UPLOAD_URL,
        files_url: str = DEFAULT_FILES_URL,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._client = client
        self._api_key = api_key
        self.poll_interval = poll_interval
        self.processing_timeout = processing_timeout
        self._upload_url = upload_url.rstrip("/")
        self._files_url = files_url.rstrip("/")

    def _params(self) -> dict[str, str]:
        return {"key": self._api_key}

    async def start_upload(self, size: int, mime_type: str, display_name: str) -> str:
        """Initiate a resumable upload and return the session upload URL."""
        logger.debug("Starting resumable upload for %s (%d bytes)", display_name, size)
        response = await send(
            self._client,
            "POST",
            self._upload_url,
            "upload.start",
            params=self._params(),
            headers={
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(size),
                "X-Goog-Upload-Header-Content-Type": mime_type,
            },
            json={"file": {"display_name": display_name}},
        )
        raise_for_remote_status(response, "upload.start")

        upload_url = response.headers.get("x-goog-upload-url")
        if not upload_url:
            raise UploadFailedError(
                "Missing upload URL in response headers", operation="upload.start"
            )
        return upload_url

    async def upload_bytes(self, upload_url: str, data: bytes) -> FileInfo:
        """Upload the whole payload to a session URL and finalize it."""
        logger.debug("Uploading %d bytes to upload URL", len(data))
        response = await send(
            self._client,
            "POST",
            upload_url,
            "upload.transfer",
            headers={
                "X-Goog-Upload-Offset": "0",
                "X-Goog-Upload-Command": "upload, finalize",
            },
            content=data,
        )
        raise_for_remote_status(response, "upload.transfer")
        body = parse_json(response, "upload.transfer")
        file_info = FileInfo.from_api(body.get("file") or {})
        logger.info("File uploaded: %s (%s)", file_info.name, file_info.uri)
        return file_info

    async def get_file_info(self, file_name: str) -> FileInfo:
        """Fetch the current file resource by name (``files/<id>`` or ``<id>``)."""
        url = f"{self._files_url}/{extract_file_id(file_name)}"
        response = await send(
            self._client, "GET", url, "upload.poll", params=self._params()
        )
        raise_for_remote_status(response, "upload.poll")
        return FileInfo.from_api(parse_json(response, "upload.poll"))

    async def delete_file(self, file_name: str) -> None:
        """Delete a remote file."""
        url = f"{self._files_url}/{extract_file_id(file_name)}"
        logger.debug("Deleting file: %s", file_name)
        response = await send(
            self._client, "DELETE", url, "upload.delete", params=self._params()
        )
        raise_for_remote_status(response, "upload.delete")
        logger.info("File deleted: %s", file_name)

    async def upload(
        self, data: bytes, mime_type: str, display_name: str
    ) -> UploadSession:
        """Drive a new session through start, transfer and poll.

        Returns:
            An ACTIVE UploadSession whose ``file`` can be referenced.

        Raises:
            UploadFailedError: If remote processing ended FAILED.
            ProcessingTimeoutError: If the file never became ACTIVE in time.
            RemoteError: Classified failure of any protocol leg.
        """
        session = UploadSession(self, data, mime_type, display_name)
        await session.start()
        try:
            await session.transfer()
            await session.poll()
        except BaseException:
            # A retry opens a new session; this one's file would be orphaned.
            if session.file is not None:
                await session.release()
            raise

        if session.state is UploadState.ACTIVE:
            return session

        # Unusable remote file: drop it before reporting the failure.
        await session.release()
        if session.state is UploadState.TIMED_OUT:
            raise ProcessingTimeoutError(
                f"File processing timeout after {self.processing_timeout:.0f} seconds",
                timeout_seconds=self.processing_timeout,
            )
        name = session.file.name if session.file else display_name
        raise UploadFailedError(
            f"File processing failed for {name}", operation="upload.poll"
        )
