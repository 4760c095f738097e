"""Gemini generateContent client for transcription and image capabilities.

Every public method performs exactly one attempt and raises a classified
RemoteError on failure; retries are applied by RemoteCaller around it.
The httpx client is owned by the batch run and shared read-only.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Sequence

import httpx

from gemini_batch.remote.interface import GeneratedImage, InputImage, Transcript
from gemini_batch.remote.options import ImageModel, ImageOptions
from gemini_batch.remote.transport import parse_json, raise_for_remote_status, send
from gemini_batch.utils.errors import InputError, InvalidResponseError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-flash"
EDIT_MODEL = ImageModel.GEMINI_3_PRO

TRANSCRIPTION_PROMPT = """Process the audio file and generate a detailed transcription.

Requirements:
1. Identify distinct speakers (e.g., Speaker 1, Speaker 2, or names if context allows).
2. Provide accurate timestamps for each segment (Format: MM:SS).
3. Detect the primary language of each segment.
4. If the segment is in a language different than English, also provide the English translation.
5. Identify the primary emotion of the speaker in this segment. You MUST choose exactly one of the following: Happy, Sad, Angry, Neutral.
6. Provide a brief summary of the entire audio at the beginning."""

TRANSCRIPT_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "summary": {
            "type": "STRING",
            "description": "A concise summary of the audio content.",
        },
        "segments": {
            "type": "ARRAY",
            "description": "List of transcribed segments with speaker and timestamp.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "speaker": {"type": "STRING"},
                    "timestamp": {"type": "STRING"},
                    "content": {"type": "STRING"},
                    "language": {"type": "STRING"},
                    "language_code": {"type": "STRING"},
                    "translation": {"type": "STRING"},
                    "emotion": {
                        "type": "STRING",
                        "enum": ["happy", "sad", "angry", "neutral"],
                    },
                },
                "required": [
                    "speaker",
                    "timestamp",
                    "content",
                    "language",
                    "language_code",
                    "emotion",
                ],
            },
        },
    },
    "required": ["summary", "segments"],
}


def _first_parts(body: dict, operation: str) -> list[dict]:
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as exc:
        raise InvalidResponseError(
            "Missing parts in response", operation=operation
        ) from exc
    if not isinstance(parts, list):
        raise InvalidResponseError("Missing parts in response", operation=operation)
    return parts


class GeminiClient:
    """Single-attempt client for the capabilities used by batch jobs.

    Args:
        client: Shared httpx client.
        api_key: Gemini API key.
        model: Model used for transcription.
        image_model: Default model for text-to-image generation.
        base_url: Models endpoint (overridable for tests).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str = DEFAULT_MODEL,
        image_model: ImageModel = ImageModel.GEMINI_25_FLASH,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._client = client
        self._api_key = api_key
        self.model = model
        self.image_model = image_model
        self._base_url = base_url.rstrip("/")

    async def _generate(self, model: str, payload: dict, operation: str) -> dict:
        url = f"{self._base_url}/{model}:generateContent"
        logger.debug("Sending %s request (model: %s)", operation, model)
        response = await send(
            self._client,
            "POST",
            url,
            operation,
            params={"key": self._api_key},
            json=payload,
        )
        logger.debug("Received %s response with status %d", operation, response.status_code)
        raise_for_remote_status(response, operation)
        return parse_json(response, operation)

    async def _transcribe(self, media_part: dict) -> Transcript:
        payload = {
            "contents": [{"parts": [{"text": TRANSCRIPTION_PROMPT}, media_part]}],
            "generation_config": {
                "response_mime_type": "application/json",
                "response_schema": TRANSCRIPT_SCHEMA,
            },
        }
        body = await self._generate(self.model, payload, "transcribe")
        parts = _first_parts(body, "transcribe")
        text = parts[0].get("text") if parts else None
        if not isinstance(text, str):
            raise InvalidResponseError(
                "Failed to extract text from Gemini response", operation="transcribe"
            )
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise InvalidResponseError(
                "Failed to parse transcript JSON", operation="transcribe"
            ) from exc
        return Transcript.from_dict(data)

    async def transcribe_inline(self, data: bytes, mime_type: str) -> Transcript:
        """Transcribe audio sent inline as base64."""
        return await self._transcribe(
            {
                "inline_data": {
                    "mime_type": mime_type,
                    "data": base64.b64encode(data).decode("ascii"),
                }
            }
        )

    async def transcribe_file_uri(self, file_uri: str, mime_type: str) -> Transcript:
        """Transcribe audio previously uploaded through the File API."""
        return await self._transcribe(
            {"file_data": {"mime_type": mime_type, "file_uri": file_uri}}
        )

    @staticmethod
    def _extract_image(body: dict, operation: str) -> GeneratedImage:
        for part in _first_parts(body, operation):
            inline = part.get("inlineData") or part.get("inline_data")
            if not inline:
                continue
            encoded = inline.get("data")
            if not isinstance(encoded, str):
                raise InvalidResponseError("Missing image data", operation=operation)
            try:
                image_bytes = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise InvalidResponseError(
                    f"Base64 decode error: {exc}", operation=operation
                ) from exc
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return GeneratedImage(data=image_bytes, mime_type=mime_type)
        raise InvalidResponseError("No image data in response", operation=operation)

    async def generate_image(
        self,
        prompt: str,
        options: ImageOptions | None = None,
        model: ImageModel | None = None,
    ) -> GeneratedImage:
        """Generate one image from a text prompt."""
        model = model or self.image_model
        options = options or ImageOptions()
        options.validate_for(model)

        if model.supports_image_config:
            payload = {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "responseModalities": ["TEXT", "IMAGE"],
                    "imageConfig": options.to_api(),
                },
            }
        else:
            payload = {"contents": [{"parts": [{"text": prompt}]}]}

        body = await self._generate(model.value, payload, "generate_image")
        return self._extract_image(body, "generate_image")

    async def edit_images(
        self,
        prompt: str,
        images: Sequence[InputImage],
        options: ImageOptions | None = None,
    ) -> GeneratedImage:
        """Produce a new image from a prompt and one or more reference images."""
        if not images:
            raise InputError("No input images provided")
        options = options or ImageOptions()
        parts: list[dict] = [{"text": prompt}]
        for image in images:
            parts.append(
                {
                    "inline_data": {
                        "mime_type": image.mime_type,
                        "data": image.base64_data(),
                    }
                }
            )
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
                "imageConfig": options.to_api(),
            },
        }
        body = await self._generate(EDIT_MODEL.value, payload, "edit_images")
        return self._extract_image(body, "edit_images")
