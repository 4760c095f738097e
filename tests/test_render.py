"""Tests for transcript rendering."""

import json

from gemini_batch.remote.interface import Transcript, TranscriptSegment
from gemini_batch.render.transcript import (
    OutputFormat,
    format_output,
    output_extension,
    to_srt,
    to_txt,
    to_vtt,
)


def _segment(timestamp: str, speaker: str = "Speaker 1", **kwargs) -> TranscriptSegment:
    defaults = {
        "content": f"said at {timestamp}",
        "language": "English",
        "language_code": "en",
        "emotion": "neutral",
    }
    defaults.update(kwargs)
    return TranscriptSegment(speaker=speaker, timestamp=timestamp, **defaults)


def _transcript() -> Transcript:
    return Transcript(
        summary="A short talk",
        segments=[
            _segment("00:00"),
            _segment("00:58", speaker="Speaker 2", translation="Hello"),
        ],
    )


class TestOutputFormat:
    def test_extensions(self) -> None:
        assert [output_extension(f) for f in OutputFormat] == ["json", "srt", "vtt", "txt"]


class TestSrt:
    def test_cue_ends_at_next_start(self) -> None:
        srt = to_srt(_transcript())
        assert srt.startswith("1\n00:00:00,000 --> 00:00:58,000\n[Speaker 1] said at 00:00\n\n")

    def test_last_cue_ends_five_seconds_later(self) -> None:
        srt = to_srt(_transcript())
        assert "2\n00:00:58,000 --> 00:01:03,000\n[Speaker 2]" in srt

    def test_empty_transcript(self) -> None:
        assert to_srt(Transcript(summary="", segments=[])) == ""


class TestVtt:
    def test_header_and_voice_tags(self) -> None:
        vtt = to_vtt(_transcript())
        assert vtt.startswith("WEBVTT\n\n00:00:00.000 --> 00:00:58.000\n<v Speaker 1>")
        assert "00:00:58.000 --> 00:01:03.000\n<v Speaker 2>said at 00:58" in vtt


class TestTxt:
    def test_summary_and_segments(self) -> None:
        txt = to_txt(_transcript())
        assert txt.startswith("Summary:\nA short talk\n\n---\n\n")
        assert "[00:00] Speaker 1 (neutral)\nsaid at 00:00\n\n" in txt
        assert "  Translation: Hello\n" in txt


class TestFormatOutput:
    def test_json_round_trips_fields(self) -> None:
        data = json.loads(format_output(_transcript(), OutputFormat.JSON))
        assert data["summary"] == "A short talk"
        assert data["segments"][1]["translation"] == "Hello"

    def test_dispatches_by_format(self) -> None:
        transcript = _transcript()
        assert format_output(transcript, OutputFormat.SRT) == to_srt(transcript)
        assert format_output(transcript, OutputFormat.VTT) == to_vtt(transcript)
        assert format_output(transcript, OutputFormat.TXT) == to_txt(transcript)
