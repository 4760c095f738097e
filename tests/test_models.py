"""Tests for batch and remote data models."""

from pathlib import Path

import pytest

from gemini_batch.batch.idempotency import should_skip
from gemini_batch.batch.models import (
    BatchConfig,
    BatchSummary,
    Job,
    JobOutcome,
    JobStatus,
    Payload,
)
from gemini_batch.remote.interface import (
    FileInfo,
    GeneratedImage,
    InputImage,
    Transcript,
    extract_file_id,
)
from gemini_batch.remote.options import AspectRatio, ImageModel, ImageOptions, ImageSize
from gemini_batch.utils.errors import (
    ConfigurationError,
    InputError,
    InvalidResponseError,
    UnsupportedFormatError,
)


class TestJobLifecycle:
    """Status transitions of a single job."""

    def test_success_path(self) -> None:
        job = Job(job_id="a", destination=Path("a.json"))
        job.mark_running()
        job.mark_succeeded(artifacts=4)
        assert job.status is JobStatus.SUCCEEDED
        assert job.artifacts == 4

    def test_failure_records_cause(self) -> None:
        job = Job(job_id="a", destination=Path("a.json"))
        job.mark_running()
        job.mark_failed("HTTP 400")
        assert job.status is JobStatus.FAILED
        assert job.error == "HTTP 400"

    def test_terminal_job_cannot_change(self) -> None:
        job = Job(job_id="a", destination=Path("a.json"))
        job.mark_skipped()
        with pytest.raises(RuntimeError, match="already skipped"):
            job.mark_running()
        with pytest.raises(RuntimeError):
            job.mark_failed("late")

    def test_outcome_snapshot(self) -> None:
        job = Job(job_id="a", destination=Path("a.json"), attempts=2)
        job.mark_running()
        job.mark_succeeded()
        outcome = job.outcome(1.5)
        assert outcome == JobOutcome(
            job_id="a",
            status=JobStatus.SUCCEEDED,
            destination=Path("a.json"),
            artifacts=1,
            attempts=2,
            duration_seconds=1.5,
        )

    def test_artifact_paths_include_alternates(self) -> None:
        job = Job(
            job_id="a",
            destination=Path("a.png"),
            alternates=(Path("a.jpg"), Path("a.webp")),
        )
        assert job.artifact_paths() == [Path("a.png"), Path("a.jpg"), Path("a.webp")]


class TestPayload:
    def test_read_prefers_data(self, tmp_path: Path) -> None:
        path = tmp_path / "a.mp3"
        path.write_bytes(b"file")
        assert Payload("audio/mpeg", path=path, data=b"mem").read() == b"mem"
        assert Payload("audio/mpeg", path=path).read() == b"file"

    def test_read_without_source_raises(self) -> None:
        with pytest.raises(ValueError):
            Payload("audio/mpeg").read()


class TestIdempotency:
    def test_skip_when_destination_exists(self, tmp_path: Path) -> None:
        dest = tmp_path / "a.json"
        dest.write_text("{}")
        assert should_skip(Job(job_id="a", destination=dest))

    def test_skip_when_alternate_exists(self, tmp_path: Path) -> None:
        (tmp_path / "img.webp").write_bytes(b"x")
        job = Job(
            job_id="img",
            destination=tmp_path / "img.png",
            alternates=(tmp_path / "img.jpg", tmp_path / "img.webp"),
        )
        assert should_skip(job)

    def test_no_skip_when_nothing_exists(self, tmp_path: Path) -> None:
        assert not should_skip(Job(job_id="a", destination=tmp_path / "a.json"))


class TestBatchConfig:
    def test_defaults(self) -> None:
        config = BatchConfig()
        assert config.concurrency == 2
        assert config.start_delay == 5.0
        assert config.max_attempts == 3
        assert config.per_call_timeout == 600.0
        assert config.attempt_timeout is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"concurrency": 0},
            {"start_delay": -1},
            {"max_attempts": 0},
            {"per_call_timeout": 0},
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict) -> None:
        with pytest.raises(ConfigurationError):
            BatchConfig(**kwargs)


class TestBatchSummary:
    def _outcome(self, job_id: str, status: JobStatus, **kwargs) -> JobOutcome:
        return JobOutcome(job_id=job_id, status=status, destination=Path(job_id), **kwargs)

    def test_counts_partition_outcomes(self) -> None:
        summary = BatchSummary(
            outcomes=[
                self._outcome("a", JobStatus.SUCCEEDED, artifacts=3, attempts=1),
                self._outcome("b", JobStatus.SKIPPED),
                self._outcome("c", JobStatus.FAILED, error="HTTP 400", attempts=1),
                self._outcome("d", JobStatus.SUCCEEDED, artifacts=1, attempts=3),
            ]
        )
        assert summary.total == 4
        assert len(summary.succeeded) == 2
        assert len(summary.skipped) == 1
        assert len(summary.failed) == 1
        assert summary.total_artifacts == 4
        assert summary.total_attempts == 5
        assert summary.errors == [("c", "HTTP 400")]
        assert summary.get("d").attempts == 3
        assert summary.get("missing") is None


class TestTranscript:
    def test_from_dict(self) -> None:
        transcript = Transcript.from_dict(
            {
                "summary": "A chat",
                "segments": [
                    {
                        "speaker": "Speaker 1",
                        "timestamp": "00:01",
                        "content": "Hola",
                        "language": "Spanish",
                        "language_code": "es",
                        "emotion": "happy",
                        "translation": "Hello",
                    }
                ],
            }
        )
        assert transcript.segments[0].translation == "Hello"
        assert transcript.to_dict()["summary"] == "A chat"

    def test_missing_field_raises(self) -> None:
        with pytest.raises(InvalidResponseError):
            Transcript.from_dict({"segments": []})


class TestImageTypes:
    def test_generated_image_extension(self) -> None:
        assert GeneratedImage(b"", "image/jpeg").extension == "jpg"
        assert GeneratedImage(b"", "image/unknown").extension == "png"

    def test_input_image_from_path(self, tmp_path: Path) -> None:
        path = tmp_path / "cat.JPEG"
        path.write_bytes(b"\xff\xd8")
        image = InputImage.from_path(path)
        assert image.mime_type == "image/jpeg"
        assert image.base64_data() == "/9g="

    def test_input_image_unsupported(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.pdf"
        path.write_bytes(b"%PDF")
        with pytest.raises(UnsupportedFormatError):
            InputImage.from_path(path)


class TestFileInfo:
    def test_from_api(self) -> None:
        info = FileInfo.from_api(
            {
                "name": "files/abc123",
                "uri": "https://example/files/abc123",
                "mimeType": "audio/mpeg",
                "sizeBytes": "2048",
                "state": "PROCESSING",
            }
        )
        assert info.file_id == "abc123"
        assert info.size_bytes == "2048"

    def test_missing_state_raises(self) -> None:
        with pytest.raises(InvalidResponseError):
            FileInfo.from_api({"name": "files/x", "uri": "u"})

    def test_extract_file_id(self) -> None:
        assert extract_file_id("files/xyz") == "xyz"
        assert extract_file_id("xyz") == "xyz"


class TestImageOptions:
    def test_model_aliases(self) -> None:
        assert ImageModel.parse("3pro") is ImageModel.GEMINI_3_PRO
        assert ImageModel.parse("2.5-flash") is ImageModel.GEMINI_25_FLASH
        with pytest.raises(ConfigurationError):
            ImageModel.parse("dall-e")

    def test_size_requires_uppercase(self) -> None:
        assert ImageSize.parse("2K") is ImageSize.K2
        with pytest.raises(ConfigurationError):
            ImageSize.parse("2k")

    def test_aspect_aliases(self) -> None:
        assert AspectRatio.parse("wide") is AspectRatio.WIDE
        assert AspectRatio.parse("3:4") is AspectRatio.PORTRAIT
        with pytest.raises(ConfigurationError):
            AspectRatio.parse("2:1")

    def test_to_api_defaults(self) -> None:
        assert ImageOptions().to_api() == {"aspectRatio": "1:1", "imageSize": "1K"}
        assert ImageOptions.parse("4K", "16:9").to_api() == {
            "aspectRatio": "16:9",
            "imageSize": "4K",
        }

    def test_options_rejected_for_flash(self) -> None:
        options = ImageOptions.parse("2K", None)
        with pytest.raises(InputError):
            options.validate_for(ImageModel.GEMINI_25_FLASH)
        options.validate_for(ImageModel.GEMINI_3_PRO)
        ImageOptions().validate_for(ImageModel.GEMINI_25_FLASH)
