"""Remote service clients.

Public API:
    GeminiClient   - Single-attempt client for transcription and image calls.
    FileApiClient  - Resumable upload protocol for large payloads.
    UploadSession  - One payload's start/transfer/poll/release lifecycle.
    UploadState    - Upload session states.
"""

from gemini_batch.remote.files import FileApiClient, UploadSession, UploadState
from gemini_batch.remote.gemini import GeminiClient

__all__ = ["FileApiClient", "GeminiClient", "UploadSession", "UploadState"]
