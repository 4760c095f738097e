"""Prompt-driven image generation and editing jobs.

Prompts come from the command line or a YAML file::

    prompts:
      - name: sunset
        prompt: A sunset over mountains
        output: sunset.png      # optional
        model: 3pro             # optional
        size: 2K                # optional, 3pro only
        aspect: "16:9"          # optional, 3pro only

Edit files use an ``edits`` list whose entries also carry ``images``,
paths relative to the YAML file.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from blake3 import blake3

from gemini_batch.batch.interface import JobContext, JobExecutor
from gemini_batch.batch.models import Job
from gemini_batch.remote.gemini import EDIT_MODEL, GeminiClient
from gemini_batch.remote.interface import GeneratedImage, InputImage
from gemini_batch.remote.options import ImageModel, ImageOptions
from gemini_batch.utils.errors import InputError, OutputError

logger = logging.getLogger(__name__)

IMAGE_OUTPUT_EXTENSIONS = ("png", "jpg", "webp", "gif")


@dataclass
class PromptEntry:
    """One named prompt from the command line or a YAML file."""

    name: str
    prompt: str
    output: str | None = None
    model: str | None = None
    size: str | None = None
    aspect: str | None = None
    images: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: object, index: int) -> PromptEntry:
        if not isinstance(data, dict):
            raise InputError(f"Entry {index} is not a mapping")
        name = data.get("name")
        prompt = data.get("prompt")
        if not isinstance(name, str) or not isinstance(prompt, str):
            raise InputError(f"Entry {index} needs string 'name' and 'prompt' fields")
        images = data.get("images") or []
        if not isinstance(images, list):
            raise InputError(f"Entry '{name}': 'images' must be a list")

        def optional(key: str) -> str | None:
            value = data.get(key)
            return None if value is None else str(value)

        return cls(
            name=name,
            prompt=prompt,
            output=optional("output"),
            model=optional("model"),
            size=optional("size"),
            aspect=optional("aspect"),
            images=[str(image) for image in images],
        )


def load_prompt_file(
    path: Path, key: str = "prompts", name_filter: str | None = None
) -> list[PromptEntry]:
    """Read prompt entries from a YAML file.

    Args:
        path: YAML file to read.
        key: Top-level list key ("prompts" or "edits").
        name_filter: Keep only the entry with this name.

    Raises:
        InputError: If the file is unreadable, malformed, empty, or no
            entry matches ``name_filter``.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InputError(f"Failed to read YAML file: {exc}", path=str(path)) from exc
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise InputError(f"Failed to parse YAML file: {exc}", path=str(path)) from exc

    if not isinstance(document, dict) or not isinstance(document.get(key), list):
        raise InputError(f"YAML file must contain a '{key}' list", path=str(path))

    entries = [PromptEntry.from_dict(item, i) for i, item in enumerate(document[key])]
    if name_filter is not None:
        entries = [entry for entry in entries if entry.name == name_filter]
        if not entries:
            raise InputError(f"No prompt found with name: {name_filter}", path=str(path))
    if not entries:
        raise InputError(f"No {key} found in YAML file", path=str(path))
    return entries


def slugify(value: str) -> str:
    """Lowercase ASCII alphanumerics joined by single dashes; "image" if empty."""
    slug = "-".join(part for part in re.split(r"[^a-z0-9]+", value.lower()) if part)
    return slug or "image"


def output_filename(name: str, prompt: str, extension: str) -> str:
    """Build ``slug(name)-<hash6>.<ext>`` with the hash over name + prompt."""
    digest = blake3(f"{name}{prompt}".encode()).hexdigest()[:6]
    return f"{slugify(name)}-{digest}.{extension}"


def build_image_jobs(
    entries: Iterable[PromptEntry],
    output_dir: Path,
    base_dir: Path | None = None,
) -> list[Job]:
    """Create one job per prompt entry.

    Entries without an explicit output get a generated filename; any of
    the possible image extensions counts as an existing artifact.
    Input images are resolved against ``base_dir``.
    """
    jobs: list[Job] = []
    for entry in entries:
        if entry.output and Path(entry.output).suffix:
            destination = output_dir / entry.output
            alternates: tuple[Path, ...] = ()
            fixed_name = True
        else:
            if entry.output:
                stem = output_dir / entry.output
            else:
                stem = output_dir / output_filename(entry.name, entry.prompt, "png")
            destination = stem.with_suffix(".png")
            alternates = tuple(
                stem.with_suffix(f".{ext}") for ext in IMAGE_OUTPUT_EXTENSIONS[1:]
            )
            fixed_name = False

        images = [
            (base_dir / image) if base_dir is not None else Path(image)
            for image in entry.images
        ]
        jobs.append(
            Job(
                job_id=entry.name,
                destination=destination,
                alternates=alternates,
                params={"entry": entry, "images": images, "fixed_name": fixed_name},
            )
        )
    return jobs


def _write_image(path: Path, image: GeneratedImage) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(image.data)
    except OSError as exc:
        raise OutputError(f"Failed to write image file: {exc}", path=str(path)) from exc


async def save_image(job: Job, image: GeneratedImage) -> Path:
    """Write an image to the job's destination, fixing the extension if free."""
    path = job.destination
    if not job.params.get("fixed_name"):
        path = path.with_suffix(f".{image.extension}")
    await asyncio.to_thread(_write_image, path, image)
    logger.info("Image saved to: %s", path, extra={"job_id": job.job_id})
    return path


class ImageGenerationExecutor(JobExecutor):
    """Generate an image from each job's prompt.

    Args:
        gemini: Capability client.
        default_model: Model used when an entry does not name one.
        default_size: Size used when an entry does not set one.
        default_aspect: Aspect ratio used when an entry does not set one.
    """

    def __init__(
        self,
        gemini: GeminiClient,
        default_model: ImageModel = ImageModel.GEMINI_25_FLASH,
        default_size: str | None = None,
        default_aspect: str | None = None,
    ) -> None:
        self._gemini = gemini
        self.default_model = default_model
        self.default_size = default_size
        self.default_aspect = default_aspect

    async def execute(self, job: Job, context: JobContext) -> int:
        entry: PromptEntry = job.params["entry"]
        model = ImageModel.parse(entry.model) if entry.model else self.default_model
        options = ImageOptions.parse(
            entry.size or self.default_size, entry.aspect or self.default_aspect
        )
        options.validate_for(model)

        image = await context.caller.execute(
            lambda: self._gemini.generate_image(entry.prompt, options, model),
            "generate_image",
        )
        await save_image(job, image)
        return 1


class ImageEditExecutor(JobExecutor):
    """Transform each job's input images according to its prompt."""

    def __init__(
        self,
        gemini: GeminiClient,
        default_size: str | None = None,
        default_aspect: str | None = None,
    ) -> None:
        self._gemini = gemini
        self.default_size = default_size
        self.default_aspect = default_aspect

    async def execute(self, job: Job, context: JobContext) -> int:
        entry: PromptEntry = job.params["entry"]
        paths: list[Path] = job.params["images"]
        if not paths:
            raise InputError("No input images provided", job_id=job.job_id)
        for path in paths:
            if not path.is_file():
                raise InputError(
                    f"Image not found: {path}", job_id=job.job_id, path=str(path)
                )

        options = ImageOptions.parse(
            entry.size or self.default_size, entry.aspect or self.default_aspect
        )
        options.validate_for(EDIT_MODEL)
        images = [await asyncio.to_thread(InputImage.from_path, path) for path in paths]

        image = await context.caller.execute(
            lambda: self._gemini.edit_images(entry.prompt, images, options),
            "edit_images",
        )
        await save_image(job, image)
        return 1
