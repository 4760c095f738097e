"""Concurrent batch execution of Gemini transcription and image jobs."""
