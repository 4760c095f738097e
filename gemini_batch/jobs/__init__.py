"""Executors and job builders for transcription and image batches."""

from gemini_batch.jobs.images import ImageEditExecutor, ImageGenerationExecutor
from gemini_batch.jobs.transcribe import TranscriptionExecutor

__all__ = ["ImageEditExecutor", "ImageGenerationExecutor", "TranscriptionExecutor"]
