"""Audio extraction from video using ffmpeg.

Converts a video container's audio track to MP3 (libmp3lame, VBR
quality 2) so it can be submitted for transcription.
"""

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from gemini_batch.utils.errors import TranscodeError

FFMPEG_TIMEOUT_SECONDS = 1800
OUTPUT_MIME_TYPE = "audio/mpeg"


@dataclass
class TranscodeResult:
    """Result of a successful audio extraction."""

    input_path: str
    output_path: str
    input_size_bytes: int
    output_size_bytes: int


def _check_ffmpeg_available() -> str:
    """Verify ffmpeg is available on the system.

    Returns:
        Path to the ffmpeg binary.

    Raises:
        TranscodeError: If ffmpeg is not found.
    """
    ffmpeg_path = shutil.which("ffmpeg")
    if ffmpeg_path is None:
        raise TranscodeError("Failed to execute ffmpeg. Is ffmpeg installed?")
    return ffmpeg_path


def extract_audio(input_path: str | Path, output_path: str | Path) -> TranscodeResult:
    """Extract the audio track of ``input_path`` into an MP3 file.

    Args:
        input_path: Path to the source video (or audio) file.
        output_path: Destination MP3 path; overwritten if present.

    Returns:
        TranscodeResult with paths and sizes.

    Raises:
        TranscodeError: If the input is missing, ffmpeg is unavailable,
            fails, times out, or produces no output.
    """
    input_path = str(input_path)
    output_path = str(output_path)

    if not os.path.exists(input_path):
        raise TranscodeError(
            f"Input file does not exist: {input_path}",
            input_path=input_path,
        )

    ffmpeg_path = _check_ffmpeg_available()

    cmd = [
        ffmpeg_path,
        "-i",
        input_path,
        "-vn",
        "-acodec",
        "libmp3lame",
        "-q:a",
        "2",
        "-y",
        output_path,
    ]

    try:
        subprocess.run(
            cmd,
            check=True,
            capture_output=True,
            text=True,
            timeout=FFMPEG_TIMEOUT_SECONDS,
        )
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.strip() if exc.stderr else "unknown error"
        raise TranscodeError(
            f"ffmpeg failed: {stderr[-500:]}",
            input_path=input_path,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise TranscodeError(
            f"ffmpeg timed out after {FFMPEG_TIMEOUT_SECONDS} seconds",
            input_path=input_path,
        ) from exc

    if not os.path.exists(output_path):
        raise TranscodeError(
            f"ffmpeg produced no output file: {output_path}",
            input_path=input_path,
        )

    return TranscodeResult(
        input_path=input_path,
        output_path=output_path,
        input_size_bytes=os.path.getsize(input_path),
        output_size_bytes=os.path.getsize(output_path),
    )
