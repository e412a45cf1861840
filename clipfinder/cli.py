from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Callable, TypeVar

import typer

from clipfinder.catalog import JsonVideoCatalog
from clipfinder.config import Settings, load_settings
from clipfinder.errors import ClipDetectionError
from clipfinder.extract.chapters import extract_chapters
from clipfinder.logging_config import configure_logging
from clipfinder.models import DetectionMode, SectionSource
from clipfinder.pipeline import ClipDetector, register_and_detect
from clipfinder.propose.exporter import candidates_payload, export_candidates
from clipfinder.sources.youtube_api import YouTubeDataClient

app = typer.Typer(help="Detect song and segment clip candidates in YouTube videos.")
config_app = typer.Typer(help="Configuration commands.")

app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_OPTION_HELP = "Path to YAML configuration file."


@dataclass(slots=True)
class Services:
    catalog: JsonVideoCatalog
    youtube: YouTubeDataClient
    detector: ClipDetector


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path)
    return settings


def _build_services(settings: Settings) -> Services:
    catalog = JsonVideoCatalog(settings.storage.catalog_path, caption_settings=settings.captions)
    youtube = YouTubeDataClient(settings.youtube, detection=settings.detection)
    detector = ClipDetector(
        metadata=catalog,
        comments=youtube,
        captions=catalog,
        chapters=youtube,
        settings=settings,
    )
    return Services(catalog=catalog, youtube=youtube, detector=detector)


def _fail(exc: Exception) -> typer.Exit:
    logger.error("Detection failed: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@config_app.command("show")
def show_config(
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="CLIPFINDER_CONFIG",
        help=CONFIG_OPTION_HELP,
    )
) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    payload = settings.model_dump(mode="json")
    if payload["youtube"]["api_key"]:
        payload["youtube"]["api_key"] = "***"
    typer.echo(json.dumps(payload, indent=2))


@app.command("detect")
def detect(
    video_id: str,
    mode: str = typer.Option(DetectionMode.COMBINED.value, "--mode", "-m", help="chapters, captions or combined."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Optional JSON/CSV export path."),
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="CLIPFINDER_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Detect clip candidates for a registered video."""

    settings = _bootstrap(config_path)
    services = _build_services(settings)

    try:
        candidates = _run_with_progress(
            1,
            1,
            "Detect candidates",
            lambda: services.detector.detect(video_id, mode),
        )
    except (ClipDetectionError, RuntimeError, ValueError) as exc:
        raise _fail(exc) from exc

    result: dict[str, object] = {
        "status": "ok",
        "video_id": video_id,
        "mode": mode.strip().lower(),
        "candidates": candidates_payload(candidates),
    }
    if output is not None:
        result["output"] = str(export_candidates(candidates, output))
    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))


@app.command("suggest")
def suggest(
    video_url: str,
    captions: Path | None = typer.Option(None, "--captions", help="Caption file (JSON array or start|text lines)."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Optional JSON/CSV export path."),
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="CLIPFINDER_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Register a video URL (or reuse it) and suggest clips in combined mode."""

    settings = _bootstrap(config_path)
    services = _build_services(settings)

    try:
        suggestion = _run_with_progress(
            1,
            1,
            "Register and detect",
            lambda: register_and_detect(
                video_url,
                registry=services.catalog,
                metadata=services.youtube,
                detector=services.detector,
                captions_path=str(captions) if captions else None,
            ),
        )
    except (ClipDetectionError, RuntimeError, ValueError) as exc:
        raise _fail(exc) from exc

    result: dict[str, object] = {
        "status": suggestion.status,
        "created": suggestion.created,
        "reused": suggestion.reused,
        "video": {
            "video_id": suggestion.video.video_id,
            "url": suggestion.video.url,
            "title": suggestion.video.title,
            "duration_sec": suggestion.video.duration_sec,
        },
        "candidates": candidates_payload(suggestion.candidates),
    }
    if suggestion.message:
        result["message"] = suggestion.message
    if output is not None:
        result["output"] = str(export_candidates(suggestion.candidates, output))
    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))


@app.command("extract")
def extract(
    text_path: Path = typer.Argument(..., help="Text file holding a description or a comment."),
    source: str = typer.Option("description", help="description or comment."),
    duration: int | None = typer.Option(None, help="Video duration in seconds, if known."),
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="CLIPFINDER_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Extract chapter candidates from a local text file without any network calls."""

    settings = _bootstrap(config_path)
    sources = {"description": SectionSource.VIDEO_DESCRIPTION, "comment": SectionSource.COMMENT}
    section_source = sources.get(source.strip().lower())
    if section_source is None:
        typer.echo(f"Error: unsupported source '{source}'. Expected one of: description, comment.", err=True)
        raise typer.Exit(code=2)
    if not text_path.exists():
        typer.echo(f"Error: text file not found: {text_path}", err=True)
        raise typer.Exit(code=1)

    candidates = extract_chapters(
        text_path.read_text(encoding="utf-8"),
        duration_sec=duration,
        source=section_source,
        settings=settings.detection,
    )
    typer.echo(json.dumps(candidates_payload(candidates, include_source=True), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
