"""Media transcription jobs.

One job per media file; the transcript lands next to the input with the
output format's extension. Video inputs are reduced to MP3 first.
Payloads above the inline limit go through a File API upload session.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from gemini_batch.batch.interface import JobContext, JobExecutor
from gemini_batch.batch.models import Job, Payload
from gemini_batch.media.discovery import audio_mime_type, is_audio_file, is_video_file
from gemini_batch.media.transcode import OUTPUT_MIME_TYPE, extract_audio
from gemini_batch.remote.files import FileApiClient
from gemini_batch.remote.gemini import GeminiClient
from gemini_batch.remote.interface import Transcript
from gemini_batch.render.transcript import OutputFormat, format_output, output_extension
from gemini_batch.utils.errors import OutputError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# Gemini rejects inline request bodies above 20 MB.
MAX_INLINE_FILE_SIZE = 20 * 1024 * 1024


def transcript_destination(input_path: Path, fmt: OutputFormat) -> Path:
    return input_path.with_suffix(f".{output_extension(fmt)}")


def build_transcription_job(input_path: Path, fmt: OutputFormat) -> Job:
    """Create the job for one media file.

    Raises:
        UnsupportedFormatError: If the file is neither audio nor video.
    """
    destination = transcript_destination(input_path, fmt)
    if is_audio_file(input_path):
        payload = Payload(mime_type=audio_mime_type(input_path), path=input_path)
        return Job(job_id=str(input_path), destination=destination, payload=payload)
    if is_video_file(input_path):
        payload = Payload(mime_type=OUTPUT_MIME_TYPE, path=input_path.with_suffix(".mp3"))
        return Job(
            job_id=str(input_path),
            destination=destination,
            payload=payload,
            params={"transcode_from": input_path},
        )
    raise UnsupportedFormatError(
        f"Not a supported audio or video file: {input_path}", path=str(input_path)
    )


def build_transcription_jobs(files: Iterable[Path], fmt: OutputFormat) -> list[Job]:
    return [build_transcription_job(path, fmt) for path in files]


async def _remove_file(path: Path) -> None:
    await asyncio.to_thread(path.unlink, missing_ok=True)


def _copy_new_file(source: Path, target: Path) -> bool:
    """Copy ``source`` to ``target`` unless ``target`` already exists."""
    try:
        with open(source, "rb") as src, open(target, "xb") as dst:
            shutil.copyfileobj(src, dst)
    except FileExistsError:
        return False
    except OSError as exc:
        raise OutputError(f"Failed to keep extracted audio: {exc}", path=str(target)) from exc
    return True


def _write_text(path: Path, text: str) -> None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise OutputError(f"Failed to write output file: {exc}", path=str(path)) from exc


class TranscriptionExecutor(JobExecutor):
    """Transcribe a job's audio payload and write the rendered transcript.

    Args:
        gemini: Capability client for transcription calls.
        files: File API client for payloads above ``inline_limit``.
        output_format: Rendering of the written transcript.
        keep_audio: Keep MP3 files extracted from video inputs.
        force_file_api: Upload every payload, even small ones.
        keep_remote_file: Do not delete uploaded files after use.
        inline_limit: Largest payload in bytes sent inline.
    """

    def __init__(
        self,
        gemini: GeminiClient,
        files: FileApiClient,
        output_format: OutputFormat = OutputFormat.JSON,
        keep_audio: bool = False,
        force_file_api: bool = False,
        keep_remote_file: bool = False,
        inline_limit: int = MAX_INLINE_FILE_SIZE,
    ) -> None:
        self._gemini = gemini
        self._files = files
        self.output_format = output_format
        self.keep_audio = keep_audio
        self.force_file_api = force_file_api
        self.keep_remote_file = keep_remote_file
        self.inline_limit = inline_limit

    async def _prepare_audio(self, job: Job, payload: Payload, context: JobContext) -> Payload:
        """Extract a video job's audio and return the payload to send.

        ffmpeg writes into a temporary file owned by this job. With
        ``keep_audio`` a copy lands at ``payload.path`` unless that file
        already exists.
        """
        source = job.params.get("transcode_from")
        if source is None or payload.path is None:
            return payload
        fd, name = tempfile.mkstemp(prefix=f"{source.stem}.", suffix=".mp3")
        os.close(fd)
        extracted = Path(name)
        context.defer(lambda: _remove_file(extracted), "remove extracted audio")
        logger.debug("Extracting audio from %s to %s", source, extracted)
        await asyncio.to_thread(extract_audio, source, extracted)

        if self.keep_audio:
            if await asyncio.to_thread(_copy_new_file, extracted, payload.path):
                logger.info("Kept extracted audio at %s", payload.path)
            else:
                logger.warning(
                    "Not keeping extracted audio: %s already exists",
                    payload.path,
                    extra={"job_id": job.job_id},
                )
        return replace(payload, path=extracted)

    async def _transcribe_uploaded(
        self, data: bytes, payload: Payload, display_name: str, context: JobContext
    ) -> Transcript:
        session = await context.caller.execute(
            lambda: self._files.upload(data, payload.mime_type, display_name),
            "upload",
        )
        if not self.keep_remote_file:
            context.defer(session.release, "release remote file")
        file_uri = session.file.uri
        logger.info(
            "Uploaded %s as %s in %.1fs",
            display_name,
            session.file.name,
            session.elapsed_seconds,
            extra={"job_id": context.job.job_id, "stage": "upload"},
        )
        return await context.caller.execute(
            lambda: self._gemini.transcribe_file_uri(file_uri, payload.mime_type),
            "transcribe",
        )

    async def execute(self, job: Job, context: JobContext) -> int:
        payload = job.payload
        if payload is None:
            raise UnsupportedFormatError("Job has no payload", job_id=job.job_id)

        if payload.remote_uri is not None:
            transcript = await context.caller.execute(
                lambda: self._gemini.transcribe_file_uri(
                    payload.remote_uri, payload.mime_type
                ),
                "transcribe",
            )
        else:
            payload = await self._prepare_audio(job, payload, context)
            data = await asyncio.to_thread(payload.read)
            display_name = job.payload.path.name if job.payload.path else "audio"

            if self.force_file_api or len(data) > self.inline_limit:
                transcript = await self._transcribe_uploaded(
                    data, payload, display_name, context
                )
            else:
                transcript = await context.caller.execute(
                    lambda: self._gemini.transcribe_inline(data, payload.mime_type),
                    "transcribe",
                )

        rendered = format_output(transcript, self.output_format)
        await asyncio.to_thread(_write_text, job.destination, rendered)
        logger.info("Transcript saved to: %s", job.destination, extra={"job_id": job.job_id})
        return len(transcript.segments)
