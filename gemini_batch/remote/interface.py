"""Data models for results returned by the remote service.

Transcript and image models are produced by GeminiClient; FileInfo
describes a file managed through the upload session protocol.
"""

from __future__ import annotations

import base64
from dataclasses import asdict, dataclass, field
from pathlib import Path

from gemini_batch.utils.errors import InvalidResponseError, UnsupportedFormatError

IMAGE_MIME_TYPES: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
    "heic": "image/heic",
    "heif": "image/heif",
}

IMAGE_EXTENSIONS: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass
class TranscriptSegment:
    """A segment of speech from a single speaker."""

    speaker: str
    timestamp: str
    content: str
    language: str
    language_code: str
    emotion: str
    translation: str | None = None


@dataclass
class Transcript:
    """Structured transcription: overall summary plus timed segments."""

    summary: str
    segments: list[TranscriptSegment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Transcript:
        """Build a Transcript from the model's structured JSON output.

        Raises:
            InvalidResponseError: If required fields are missing.
        """
        try:
            segments = [
                TranscriptSegment(
                    speaker=item["speaker"],
                    timestamp=item["timestamp"],
                    content=item["content"],
                    language=item["language"],
                    language_code=item["language_code"],
                    emotion=item["emotion"],
                    translation=item.get("translation"),
                )
                for item in data["segments"]
            ]
            return cls(summary=data["summary"], segments=segments)
        except (KeyError, TypeError) as exc:
            raise InvalidResponseError(
                f"Transcript JSON is missing a required field: {exc}",
                operation="transcribe",
            ) from exc

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class GeneratedImage:
    """Image bytes returned by a generation or edit call."""

    data: bytes
    mime_type: str

    @property
    def extension(self) -> str:
        return IMAGE_EXTENSIONS.get(self.mime_type, "png")


@dataclass
class InputImage:
    """Reference image sent inline with an edit request."""

    data: bytes
    mime_type: str

    @classmethod
    def from_path(cls, path: str | Path) -> InputImage:
        path = Path(path)
        ext = path.suffix.lstrip(".").lower()
        mime_type = IMAGE_MIME_TYPES.get(ext)
        if mime_type is None:
            raise UnsupportedFormatError(
                f"Unsupported image format: '{ext}'", path=str(path)
            )
        return cls(data=path.read_bytes(), mime_type=mime_type)

    def base64_data(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass
class FileInfo:
    """Metadata for a file held by the remote file service."""

    name: str
    uri: str
    mime_type: str
    size_bytes: str
    state: str
    display_name: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> FileInfo:
        """Parse the camelCase file resource returned by the API.

        Raises:
            InvalidResponseError: If name, uri or state is missing.
        """
        try:
            return cls(
                name=data["name"],
                uri=data["uri"],
                mime_type=data.get("mimeType", ""),
                size_bytes=str(data.get("sizeBytes", "")),
                state=data["state"],
                display_name=data.get("displayName"),
            )
        except (KeyError, TypeError) as exc:
            raise InvalidResponseError(
                f"File resource is missing a required field: {exc}",
                operation="files",
            ) from exc

    @property
    def file_id(self) -> str:
        return extract_file_id(self.name)


def extract_file_id(file_name: str) -> str:
    """Strip the ``files/`` prefix from a resource name if present."""
    return file_name.removeprefix("files/")
