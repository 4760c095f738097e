"""Command-line entry point for batch transcription and image jobs.

Subcommands:
    transcribe  Transcribe audio/video files found under folders.
    imagen      Generate images from a prompt or a YAML prompt file.
    edit        Edit images according to a prompt or a YAML edit file.

Exit status is 0 when every job succeeded or was skipped, 1 when any
job failed, and 2 when input or configuration errors stop the run
before the batch starts.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO

import httpx

from gemini_batch.batch.interface import JobExecutor
from gemini_batch.batch.models import BatchSummary, Job
from gemini_batch.batch.progress import LoggingProgressSink, ProgressSink, TqdmProgressSink
from gemini_batch.batch.scheduler import submit_batch
from gemini_batch.config import Settings
from gemini_batch.jobs.images import (
    ImageEditExecutor,
    ImageGenerationExecutor,
    PromptEntry,
    build_image_jobs,
    load_prompt_file,
)
from gemini_batch.jobs.transcribe import TranscriptionExecutor, build_transcription_jobs
from gemini_batch.media.discovery import find_media_files, is_media_file
from gemini_batch.observability.logger import setup_logging
from gemini_batch.remote.files import FileApiClient
from gemini_batch.remote.gemini import GeminiClient
from gemini_batch.remote.options import ImageModel, ImageOptions
from gemini_batch.render.transcript import OutputFormat
from gemini_batch.utils.errors import InputError

logger = logging.getLogger(__name__)

IMAGE_TIMEOUT_SECONDS = 120.0
DEFAULT_IMAGE_OUTPUT_DIR = Path("output")

ExecutorFactory = Callable[[httpx.AsyncClient], JobExecutor]


def _add_batch_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-j", "--jobs", type=int, help="Parallel jobs (default: 2)")
    parser.add_argument(
        "-d", "--delay", type=float, help="Seconds between job starts (default: 5)"
    )
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    parser.add_argument("--max-retries", type=int, help="Attempts per remote call")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="More log output (-vv for debug)"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Disable the progress bar"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gemini-batch",
        description="Batch transcription and image generation with Gemini",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    transcribe = subparsers.add_parser("transcribe", help="Transcribe audio and video files")
    transcribe.add_argument(
        "paths", nargs="+", type=Path, help="Folders to scan or media files"
    )
    transcribe.add_argument(
        "-f",
        "--format",
        choices=[fmt.value for fmt in OutputFormat],
        default=OutputFormat.JSON.value,
        help="Transcript format (default: json)",
    )
    transcribe.add_argument("--model", help="Transcription model")
    transcribe.add_argument(
        "--keep-audio", action="store_true", help="Keep MP3 extracted from video"
    )
    transcribe.add_argument(
        "--force-file-api", action="store_true", help="Upload every file before use"
    )
    transcribe.add_argument(
        "--keep-remote-file", action="store_true", help="Do not delete uploaded files"
    )
    _add_batch_options(transcribe)

    imagen = subparsers.add_parser("imagen", help="Generate images from prompts")
    imagen.add_argument("prompt", nargs="?", help="Text prompt")
    imagen.add_argument("--yaml", type=Path, help="YAML file with a 'prompts' list")
    imagen.add_argument("--name", help="Only run the YAML prompt with this name")
    imagen.add_argument(
        "-o", "--output", help="Output file (single prompt) or directory (YAML)"
    )
    imagen.add_argument("-m", "--model", default="2.5-flash", help="2.5-flash or 3pro")
    imagen.add_argument("-s", "--size", help="1K, 2K or 4K (3pro only)")
    imagen.add_argument("-a", "--aspect", help="1:1, 16:9, 9:16, 4:3 or 3:4 (3pro only)")
    _add_batch_options(imagen)

    edit = subparsers.add_parser("edit", help="Edit images according to prompts")
    edit.add_argument("prompt", nargs="?", help="Edit instruction")
    edit.add_argument(
        "-i", "--image", action="append", default=[], type=Path, help="Input image"
    )
    edit.add_argument("--yaml", type=Path, help="YAML file with an 'edits' list")
    edit.add_argument("--name", help="Only run the YAML edit with this name")
    edit.add_argument(
        "-o", "--output", help="Output file (single edit) or directory (YAML)"
    )
    edit.add_argument("-s", "--size", help="1K, 2K or 4K")
    edit.add_argument("-a", "--aspect", help="1:1, 16:9, 9:16, 4:3 or 3:4")
    _add_batch_options(edit)

    return parser


def _collect_media(paths: Sequence[Path]) -> list[Path]:
    files: list[Path] = []
    folders: list[Path] = []
    for path in paths:
        if path.is_file():
            if not is_media_file(path):
                raise InputError(f"Not a supported media file: {path}", path=str(path))
            files.append(path)
        else:
            folders.append(path)
    return files + find_media_files(folders)


def _transcription_batch(
    args: argparse.Namespace, settings: Settings
) -> tuple[list[Job], ExecutorFactory, str]:
    fmt = OutputFormat(args.format)
    jobs = build_transcription_jobs(_collect_media(args.paths), fmt)
    model = args.model or settings.model

    def factory(client: httpx.AsyncClient) -> JobExecutor:
        return TranscriptionExecutor(
            GeminiClient(client, settings.api_key, model=model),
            FileApiClient(client, settings.api_key),
            output_format=fmt,
            keep_audio=args.keep_audio,
            force_file_api=args.force_file_api,
            keep_remote_file=args.keep_remote_file,
        )

    return jobs, factory, "files"


def _prompt_entries(
    args: argparse.Namespace, key: str, default_name: str
) -> tuple[list[PromptEntry], Path, Path | None]:
    """Resolve entries, output directory and image base directory."""
    if args.yaml is not None:
        entries = load_prompt_file(args.yaml, key=key, name_filter=args.name)
        output_dir = Path(args.output) if args.output else DEFAULT_IMAGE_OUTPUT_DIR
        return entries, output_dir, args.yaml.parent
    if not args.prompt:
        raise InputError("Provide a prompt or --yaml")
    entry = PromptEntry(
        name=default_name,
        prompt=args.prompt,
        output=args.output,
        images=[str(image) for image in getattr(args, "image", [])],
    )
    return [entry], Path("."), None


def _imagen_batch(
    args: argparse.Namespace, settings: Settings
) -> tuple[list[Job], ExecutorFactory, str]:
    model = ImageModel.parse(args.model)
    # Fail on bad defaults before anything is scheduled.
    ImageOptions.parse(args.size, args.aspect).validate_for(model)
    entries, output_dir, _ = _prompt_entries(args, "prompts", "image")
    jobs = build_image_jobs(entries, output_dir)

    def factory(client: httpx.AsyncClient) -> JobExecutor:
        return ImageGenerationExecutor(
            GeminiClient(client, settings.api_key, image_model=model),
            default_model=model,
            default_size=args.size,
            default_aspect=args.aspect,
        )

    return jobs, factory, "images"


def _edit_batch(
    args: argparse.Namespace, settings: Settings
) -> tuple[list[Job], ExecutorFactory, str]:
    ImageOptions.parse(args.size, args.aspect)
    entries, output_dir, base_dir = _prompt_entries(args, "edits", "edited")
    if args.yaml is None and not args.image:
        raise InputError("At least one input image (-i) is required")
    jobs = build_image_jobs(entries, output_dir, base_dir=base_dir)

    def factory(client: httpx.AsyncClient) -> JobExecutor:
        return ImageEditExecutor(
            GeminiClient(client, settings.api_key),
            default_size=args.size,
            default_aspect=args.aspect,
        )

    return jobs, factory, "images"


BATCH_BUILDERS = {
    "transcribe": _transcription_batch,
    "imagen": _imagen_batch,
    "edit": _edit_batch,
}


def print_summary(summary: BatchSummary, stream: TextIO | None = None) -> None:
    """Print the batch summary: counts, then failures by job and cause."""
    stream = stream or sys.stdout
    print(
        f"\nProcessed: {len(summary.succeeded)} succeeded, "
        f"{len(summary.skipped)} skipped, {len(summary.failed)} failed "
        f"(of {summary.total}) in {summary.wall_time_seconds:.1f}s",
        file=stream,
    )
    if summary.errors:
        print("Failures:", file=stream)
        for job_id, error in summary.errors:
            print(f"  {job_id}: {error}", file=stream)


def _run(args: argparse.Namespace) -> int:
    try:
        settings = Settings.from_env()
        jobs, factory, unit = BATCH_BUILDERS[args.command](args, settings)
    except InputError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if not jobs:
        print("No jobs to run.")
        return 0

    default_timeout = settings.timeout if args.command == "transcribe" else IMAGE_TIMEOUT_SECONDS
    progress: ProgressSink = (
        LoggingProgressSink() if args.quiet else TqdmProgressSink(len(jobs), unit=unit)
    )
    try:
        summary = asyncio.run(
            submit_batch(
                jobs,
                factory,
                concurrency=args.jobs if args.jobs is not None else settings.jobs,
                start_delay=args.delay if args.delay is not None else settings.delay,
                max_attempts=(
                    args.max_retries if args.max_retries is not None else settings.max_retries
                ),
                per_call_timeout=args.timeout or default_timeout,
                progress=progress,
            )
        )
    except InputError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    finally:
        progress.close()

    print_summary(summary)
    return 1 if summary.failed else 0


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run the requested batch and return the exit status."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    logger.info("Running %s", args.command, extra={"stage": "startup"})
    return _run(args)


if __name__ == "__main__":
    sys.exit(main())
