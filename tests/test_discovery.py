"""Tests for media discovery and MIME lookup."""

import logging
from pathlib import Path

import pytest

from gemini_batch.media.discovery import (
    audio_mime_type,
    find_media_files,
    is_audio_file,
    is_media_file,
    is_video_file,
)
from gemini_batch.utils.errors import UnsupportedFormatError


class TestClassification:
    @pytest.mark.parametrize("name", ["a.mp3", "b.WAV", "c.flac", "d.m4a", "e.wma"])
    def test_audio(self, name: str) -> None:
        assert is_audio_file(Path(name))
        assert not is_video_file(Path(name))

    @pytest.mark.parametrize("name", ["a.mp4", "b.MKV", "c.webm", "d.m4v"])
    def test_video(self, name: str) -> None:
        assert is_video_file(Path(name))
        assert is_media_file(Path(name))

    def test_other(self) -> None:
        assert not is_media_file(Path("notes.txt"))
        assert not is_media_file(Path("noext"))


class TestAudioMimeType:
    @pytest.mark.parametrize(
        "name,mime",
        [("a.mp3", "audio/mpeg"), ("a.m4a", "audio/mp4"), ("a.OGG", "audio/ogg")],
    )
    def test_known(self, name: str, mime: str) -> None:
        assert audio_mime_type(Path(name)) == mime

    def test_unknown(self) -> None:
        with pytest.raises(UnsupportedFormatError):
            audio_mime_type(Path("a.mp4"))


class TestFindMediaFiles:
    def test_recursive_and_sorted(self, tmp_path: Path) -> None:
        (tmp_path / "sub").mkdir()
        for name in ["b.mp3", "a.mp4", "notes.txt", "sub/c.wav"]:
            (tmp_path / name).write_bytes(b"")

        found = find_media_files([tmp_path])

        assert found == sorted([tmp_path / "a.mp4", tmp_path / "b.mp3", tmp_path / "sub" / "c.wav"])

    def test_missing_folder_is_warned_and_skipped(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (tmp_path / "a.mp3").write_bytes(b"")
        with caplog.at_level(logging.WARNING, logger="gemini_batch.media.discovery"):
            found = find_media_files([tmp_path / "absent", tmp_path])

        assert found == [tmp_path / "a.mp3"]
        assert "Folder does not exist" in caplog.text
