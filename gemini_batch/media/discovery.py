"""Media file discovery and audio MIME type lookup."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from gemini_batch.utils.errors import UnsupportedFormatError

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset({"mp4", "mkv", "avi", "mov", "webm", "flv", "wmv", "m4v"})
AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg", "flac", "m4a", "aac", "wma"})

AUDIO_MIME_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
    "wma": "audio/x-ms-wma",
}


def _extension(path: Path) -> str:
    return path.suffix.lstrip(".").lower()


def is_audio_file(path: Path) -> bool:
    return _extension(path) in AUDIO_EXTENSIONS


def is_video_file(path: Path) -> bool:
    return _extension(path) in VIDEO_EXTENSIONS


def is_media_file(path: Path) -> bool:
    return is_audio_file(path) or is_video_file(path)


def audio_mime_type(path: Path) -> str:
    """Return the MIME type for an audio file.

    Raises:
        UnsupportedFormatError: If the extension is not a known audio type.
    """
    mime_type = AUDIO_MIME_TYPES.get(_extension(path))
    if mime_type is None:
        raise UnsupportedFormatError(
            f"Unsupported audio format: '{path.suffix}'", path=str(path)
        )
    return mime_type


def find_media_files(folders: Iterable[Path]) -> list[Path]:
    """Recursively collect media files under each folder.

    Missing folders are logged and skipped. Results are sorted per folder
    so batch start order is stable across runs.
    """
    files: list[Path] = []
    for folder in folders:
        if not folder.exists():
            logger.warning("Folder does not exist: %s", folder)
            continue
        found: list[Path] = []
        for root, _dirs, names in os.walk(folder, followlinks=True):
            for name in names:
                path = Path(root) / name
                if path.is_file() and is_media_file(path):
                    found.append(path)
        files.extend(sorted(found))
    return files
