"""Transcript rendering: JSON, SRT, WebVTT and plain text.

Segment timestamps arrive as MM:SS strings. A cue ends where the next
one starts; the final cue ends 5 seconds after its start.
"""

import json
from enum import Enum

from gemini_batch.remote.interface import Transcript

LAST_CUE_SECONDS = 5


class OutputFormat(str, Enum):
    JSON = "json"
    SRT = "srt"
    VTT = "vtt"
    TXT = "txt"


def output_extension(fmt: OutputFormat) -> str:
    return fmt.value


def _format_timestamp(timestamp: str, separator: str) -> str:
    """Format MM:SS as HH:MM:SS{sep}000."""
    parts = timestamp.split(":")
    if len(parts) == 2:
        return f"00:{parts[0]}:{parts[1]}{separator}000"
    return f"00:{timestamp}{separator}000"


def _last_cue_end(timestamp: str, separator: str) -> str:
    parts = timestamp.split(":")
    if len(parts) != 2:
        return f"00:00:{LAST_CUE_SECONDS:02d}{separator}000"
    try:
        minutes = int(parts[0])
    except ValueError:
        minutes = 0
    try:
        seconds = int(parts[1]) + LAST_CUE_SECONDS
    except ValueError:
        seconds = LAST_CUE_SECONDS
    minutes += seconds // 60
    return f"00:{minutes:02d}:{seconds % 60:02d}{separator}000"


def _cue_times(transcript: Transcript, separator: str) -> list[tuple[str, str]]:
    segments = transcript.segments
    times: list[tuple[str, str]] = []
    for i, segment in enumerate(segments):
        start = _format_timestamp(segment.timestamp, separator)
        if i + 1 < len(segments):
            end = _format_timestamp(segments[i + 1].timestamp, separator)
        else:
            end = _last_cue_end(segment.timestamp, separator)
        times.append((start, end))
    return times


def to_srt(transcript: Transcript) -> str:
    lines: list[str] = []
    for i, (segment, (start, end)) in enumerate(
        zip(transcript.segments, _cue_times(transcript, ","))
    ):
        lines.append(f"{i + 1}\n{start} --> {end}\n[{segment.speaker}] {segment.content}\n\n")
    return "".join(lines)


def to_vtt(transcript: Transcript) -> str:
    lines = ["WEBVTT\n\n"]
    for segment, (start, end) in zip(transcript.segments, _cue_times(transcript, ".")):
        lines.append(f"{start} --> {end}\n<v {segment.speaker}>{segment.content}\n\n")
    return "".join(lines)


def to_txt(transcript: Transcript) -> str:
    lines = [f"Summary:\n{transcript.summary}\n\n", "---\n\n"]
    for segment in transcript.segments:
        lines.append(
            f"[{segment.timestamp}] {segment.speaker} ({segment.emotion})\n"
            f"{segment.content}\n"
        )
        if segment.translation:
            lines.append(f"  Translation: {segment.translation}\n")
        lines.append("\n")
    return "".join(lines)


def format_output(transcript: Transcript, fmt: OutputFormat) -> str:
    """Render a transcript in the requested output format."""
    if fmt is OutputFormat.JSON:
        return json.dumps(transcript.to_dict(), indent=2, ensure_ascii=False)
    if fmt is OutputFormat.SRT:
        return to_srt(transcript)
    if fmt is OutputFormat.VTT:
        return to_vtt(transcript)
    return to_txt(transcript)
