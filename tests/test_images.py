"""Tests for prompt files, output naming and image executors."""

from __future__ import annotations

import base64
import json
import re
from pathlib import Path

import httpx
import pytest
from blake3 import blake3

from gemini_batch.batch.interface import JobContext
from gemini_batch.jobs.images import (
    ImageEditExecutor,
    ImageGenerationExecutor,
    PromptEntry,
    build_image_jobs,
    load_prompt_file,
    output_filename,
    slugify,
)
from gemini_batch.remote.gemini import GeminiClient
from gemini_batch.remote.options import ImageModel
from gemini_batch.utils.errors import ConfigurationError, InputError
from gemini_batch.utils.retry import RemoteCaller, RetryPolicy

MODELS_URL = "https://api.test/models"


def _write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "prompts.yaml"
    path.write_text(text)
    return path


def _image_handler(call_log: list[httpx.Request], mime_type: str = "image/png"):
    def handler(request: httpx.Request) -> httpx.Response:
        call_log.append(request)
        part = {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(b"img").decode()}}
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [part]}}]})

    return handler


def _context(job) -> JobContext:
    return JobContext(job=job, caller=RemoteCaller(RetryPolicy(0, 0)))


class TestLoadPromptFile:
    def test_reads_entries(self, tmp_path: Path) -> None:
        path = _write_yaml(
            tmp_path,
            """
prompts:
  - name: sunset
    prompt: A sunset over mountains
    output: sunset.png
  - name: city
    prompt: A city at night
    model: 3pro
    size: 2K
    aspect: "16:9"
""",
        )
        entries = load_prompt_file(path)
        assert [e.name for e in entries] == ["sunset", "city"]
        assert entries[0].output == "sunset.png"
        assert entries[1].model == "3pro"
        assert entries[1].aspect == "16:9"

    def test_name_filter(self, tmp_path: Path) -> None:
        path = _write_yaml(
            tmp_path,
            "prompts:\n  - {name: a, prompt: one}\n  - {name: b, prompt: two}\n",
        )
        entries = load_prompt_file(path, name_filter="b")
        assert [e.prompt for e in entries] == ["two"]

    def test_unmatched_name_filter(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "prompts:\n  - {name: a, prompt: one}\n")
        with pytest.raises(InputError, match="No prompt found with name: zzz"):
            load_prompt_file(path, name_filter="zzz")

    def test_empty_list(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "prompts: []\n")
        with pytest.raises(InputError, match="No prompts found"):
            load_prompt_file(path)

    def test_missing_key(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "other: 1\n")
        with pytest.raises(InputError, match="'prompts' list"):
            load_prompt_file(path)

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "prompts: [unclosed\n")
        with pytest.raises(InputError, match="Failed to parse"):
            load_prompt_file(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InputError, match="Failed to read"):
            load_prompt_file(tmp_path / "absent.yaml")

    def test_edit_entries(self, tmp_path: Path) -> None:
        path = _write_yaml(
            tmp_path,
            "edits:\n  - name: blue\n    prompt: make it blue\n    images: [a.png, b.jpg]\n",
        )
        entries = load_prompt_file(path, key="edits")
        assert entries[0].images == ["a.png", "b.jpg"]

    def test_entry_without_prompt(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "prompts:\n  - {name: a}\n")
        with pytest.raises(InputError, match="'name' and 'prompt'"):
            load_prompt_file(path)


class TestOutputNaming:
    def test_slugify(self) -> None:
        assert slugify("Hello, World!") == "hello-world"
        assert slugify("  sunset  over  hills ") == "sunset-over-hills"

    def test_slugify_without_alphanumerics(self) -> None:
        assert slugify("🎨🖼️") == "image"

    def test_output_filename_shape(self) -> None:
        name = output_filename("Sunset", "A sunset", "png")
        assert re.fullmatch(r"sunset-[0-9a-f]{6}\.png", name)

    def test_output_filename_is_deterministic(self) -> None:
        assert output_filename("a", "b", "png") == output_filename("a", "b", "png")
        assert output_filename("a", "b", "png") != output_filename("a", "c", "png")

    def test_output_filename_hashes_name_then_prompt_with_blake3(self) -> None:
        expected = blake3(b"SunsetA sunset").hexdigest()[:6]
        assert output_filename("Sunset", "A sunset", "png") == f"sunset-{expected}.png"


class TestBuildImageJobs:
    def test_explicit_output(self, tmp_path: Path) -> None:
        jobs = build_image_jobs([PromptEntry("s", "p", output="s.jpg")], tmp_path)
        assert jobs[0].destination == tmp_path / "s.jpg"
        assert jobs[0].alternates == ()
        assert jobs[0].params["fixed_name"]

    def test_generated_output_covers_all_extensions(self, tmp_path: Path) -> None:
        jobs = build_image_jobs([PromptEntry("Sunset", "A sunset")], tmp_path)
        job = jobs[0]
        stem = output_filename("Sunset", "A sunset", "png")[: -len(".png")]
        assert job.destination == tmp_path / f"{stem}.png"
        assert [p.suffix for p in job.alternates] == [".jpg", ".webp", ".gif"]
        assert job.job_id == "Sunset"

    def test_output_without_extension(self, tmp_path: Path) -> None:
        jobs = build_image_jobs([PromptEntry("s", "p", output="hero")], tmp_path)
        assert jobs[0].destination == tmp_path / "hero.png"
        assert tmp_path / "hero.webp" in jobs[0].alternates

    def test_images_resolved_against_base_dir(self, tmp_path: Path) -> None:
        entry = PromptEntry("e", "p", images=["in/a.png"])
        jobs = build_image_jobs([entry], tmp_path / "out", base_dir=tmp_path)
        assert jobs[0].params["images"] == [tmp_path / "in" / "a.png"]


class TestImageGenerationExecutor:
    @pytest.mark.asyncio
    async def test_writes_image_creating_directories(self, tmp_path: Path) -> None:
        call_log: list[httpx.Request] = []
        job = build_image_jobs([PromptEntry("cat", "a cat")], tmp_path / "nested")[0]

        async with httpx.AsyncClient(transport=httpx.MockTransport(_image_handler(call_log))) as client:
            executor = ImageGenerationExecutor(GeminiClient(client, "k", base_url=MODELS_URL))
            assert await executor.execute(job, _context(job)) == 1

        assert job.destination.read_bytes() == b"img"
        assert len(call_log) == 1

    @pytest.mark.asyncio
    async def test_generated_name_follows_returned_type(self, tmp_path: Path) -> None:
        job = build_image_jobs([PromptEntry("cat", "a cat")], tmp_path)[0]

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(_image_handler([], "image/jpeg"))
        ) as client:
            executor = ImageGenerationExecutor(GeminiClient(client, "k", base_url=MODELS_URL))
            await executor.execute(job, _context(job))

        assert job.destination.with_suffix(".jpg").exists()
        assert not job.destination.exists()

    @pytest.mark.asyncio
    async def test_entry_model_and_options(self, tmp_path: Path) -> None:
        call_log: list[httpx.Request] = []
        entry = PromptEntry("cat", "a cat", model="3pro", size="4K", aspect="wide")
        job = build_image_jobs([entry], tmp_path)[0]

        async with httpx.AsyncClient(transport=httpx.MockTransport(_image_handler(call_log))) as client:
            executor = ImageGenerationExecutor(GeminiClient(client, "k", base_url=MODELS_URL))
            await executor.execute(job, _context(job))

        assert ImageModel.GEMINI_3_PRO.value in call_log[0].url.path
        body = json.loads(call_log[0].content)
        assert body["generationConfig"]["imageConfig"] == {
            "aspectRatio": "16:9",
            "imageSize": "4K",
        }

    @pytest.mark.asyncio
    async def test_bad_entry_fails_before_any_request(self, tmp_path: Path) -> None:
        call_log: list[httpx.Request] = []
        job = build_image_jobs([PromptEntry("cat", "a cat", size="9K")], tmp_path)[0]

        async with httpx.AsyncClient(transport=httpx.MockTransport(_image_handler(call_log))) as client:
            executor = ImageGenerationExecutor(GeminiClient(client, "k", base_url=MODELS_URL))
            with pytest.raises(ConfigurationError):
                await executor.execute(job, _context(job))

        assert call_log == []


class TestImageEditExecutor:
    @pytest.mark.asyncio
    async def test_edits_images_relative_to_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "photo.png").write_bytes(b"photo")
        call_log: list[httpx.Request] = []
        entry = PromptEntry("blue", "make it blue", output="blue.png", images=["photo.png"])
        job = build_image_jobs([entry], tmp_path / "out", base_dir=tmp_path)[0]

        async with httpx.AsyncClient(transport=httpx.MockTransport(_image_handler(call_log))) as client:
            executor = ImageEditExecutor(GeminiClient(client, "k", base_url=MODELS_URL))
            await executor.execute(job, _context(job))

        parts = json.loads(call_log[0].content)["contents"][0]["parts"]
        assert parts[1]["inline_data"]["data"] == base64.b64encode(b"photo").decode()
        assert (tmp_path / "out" / "blue.png").read_bytes() == b"img"

    @pytest.mark.asyncio
    async def test_missing_image_is_input_error(self, tmp_path: Path) -> None:
        call_log: list[httpx.Request] = []
        entry = PromptEntry("blue", "make it blue", images=["absent.png"])
        job = build_image_jobs([entry], tmp_path, base_dir=tmp_path)[0]

        async with httpx.AsyncClient(transport=httpx.MockTransport(_image_handler(call_log))) as client:
            executor = ImageEditExecutor(GeminiClient(client, "k", base_url=MODELS_URL))
            with pytest.raises(InputError, match="Image not found"):
                await executor.execute(job, _context(job))

        assert call_log == []

    @pytest.mark.asyncio
    async def test_no_images_is_input_error(self, tmp_path: Path) -> None:
        job = build_image_jobs([PromptEntry("blue", "make it blue")], tmp_path)[0]

        async with httpx.AsyncClient(transport=httpx.MockTransport(_image_handler([]))) as client:
            executor = ImageEditExecutor(GeminiClient(client, "k", base_url=MODELS_URL))
            with pytest.raises(InputError, match="No input images"):
                await executor.execute(job, _context(job))
