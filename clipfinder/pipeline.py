from __future__ import annotations

import logging
import re
import threading
from dataclasses import replace
from typing import Callable, TypeVar
from urllib.parse import urlparse

from clipfinder.config import Settings
from clipfinder.errors import UpstreamError, ValidationError
from clipfinder.extract.chapters import extract_chapters
from clipfinder.models import (
    Candidate,
    DetectionMode,
    SectionSource,
    SuggestionResult,
    VideoDetails,
    VideoRecord,
)
from clipfinder.propose.merger import merge_candidates
from clipfinder.providers import (
    CaptionProvider,
    ChapterProvider,
    CommentProvider,
    MetadataProvider,
    VideoRegistry,
)
from clipfinder.scoring.caption_score import score_captions
from clipfinder.sources.comments import CommentSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

VIDEO_ID_QUERY_PATTERN = re.compile(r"[?&]v=([a-zA-Z0-9_-]{11})(?![a-zA-Z0-9_-])")
VIDEO_ID_LENGTH = 11


class ClipDetector:
    """Run the sources a detection mode asks for and merge their candidates."""

    def __init__(
        self,
        metadata: MetadataProvider,
        comments: CommentProvider | None = None,
        captions: CaptionProvider | None = None,
        chapters: ChapterProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.metadata = metadata
        self.comments = comments
        self.captions = captions
        self.chapters = chapters
        self.settings = settings or Settings()

    def detect(
        self,
        video_id: str,
        mode: str | DetectionMode = DetectionMode.COMBINED,
        *,
        cancel_event: threading.Event | None = None,
    ) -> list[Candidate]:
        """Detect clip candidates for a registered video.

        Raises ValidationError for a blank id or unknown mode and NotFoundError
        for an unknown video. Failing sources contribute nothing instead of
        failing the call.
        """

        resolved_id = (video_id or "").strip()
        if not resolved_id:
            raise ValidationError("videoId is required.")
        resolved_mode = parse_mode(mode)

        details = self._resolve_details(resolved_id)
        by_source: dict[SectionSource, list[Candidate]] = {}

        if resolved_mode in (DetectionMode.CHAPTERS, DetectionMode.COMBINED):
            by_source[SectionSource.VIDEO_DESCRIPTION] = extract_chapters(
                details.description,
                duration_sec=details.duration_sec,
                source=SectionSource.VIDEO_DESCRIPTION,
                settings=self.settings.detection,
            )
            by_source[SectionSource.YOUTUBE_CHAPTER] = self._platform_chapters(resolved_id, details)

            description_found = bool(by_source[SectionSource.VIDEO_DESCRIPTION])
            if resolved_mode is DetectionMode.COMBINED or not description_found:
                by_source[SectionSource.COMMENT] = self._comment_chapters(resolved_id, details, cancel_event)

        if resolved_mode in (DetectionMode.CAPTIONS, DetectionMode.COMBINED):
            by_source[SectionSource.CAPTION] = self._caption_candidates(resolved_id)

        merged = merge_candidates(
            by_source,
            resolved_mode,
            detection=self.settings.detection,
            captions=self.settings.captions,
        )
        logger.info(
            "Detected %d candidates for %s in %s mode (%s)",
            len(merged),
            resolved_id,
            resolved_mode.value,
            ", ".join(f"{source.value}={len(items)}" for source, items in by_source.items()),
        )
        return merged

    def _resolve_details(self, video_id: str) -> VideoDetails:
        try:
            return self.metadata.get_video_description_and_duration(video_id)
        except UpstreamError as exc:
            logger.warning("Failed to load description for %s; continuing without it: %s", video_id, exc)
            return VideoDetails(description="", duration_sec=None)

    def _platform_chapters(self, video_id: str, details: VideoDetails) -> list[Candidate]:
        if self.chapters is None:
            return []
        chapters = self.chapters
        return _soft(
            "platform chapters",
            video_id,
            lambda: chapters.list_platform_chapters(video_id, duration_sec=details.duration_sec),
        )

    def _comment_chapters(
        self,
        video_id: str,
        details: VideoDetails,
        cancel_event: threading.Event | None,
    ) -> list[Candidate]:
        if self.comments is None:
            return []
        source = CommentSource(self.comments, self.settings.detection)
        return source.fetch(video_id, duration_sec=details.duration_sec, cancel_event=cancel_event)

    def _caption_candidates(self, video_id: str) -> list[Candidate]:
        if self.captions is None:
            return []
        captions = self.captions
        segments = _soft("captions", video_id, lambda: captions.get_caption_segments(video_id))
        return score_captions(segments, self.settings.captions)


def register_and_detect(
    video_url: str,
    *,
    registry: VideoRegistry,
    metadata: MetadataProvider,
    detector: ClipDetector,
    captions_path: str | None = None,
) -> SuggestionResult:
    """Register a video by URL (or reuse it) and detect candidates in combined mode.

    A caption path given for an already registered video replaces the stored one.
    """

    video_id = extract_video_id(video_url)
    if video_id is None:
        raise ValidationError("Unable to parse videoId from URL")

    existing = registry.get(video_id)
    if existing is not None:
        record = existing
        created = False
        if captions_path and captions_path != existing.captions_path:
            logger.info("Updating captions for %s to %s", video_id, captions_path)
            record = registry.add(replace(existing, captions_path=captions_path))
    else:
        try:
            details = metadata.get_video_description_and_duration(video_id)
        except UpstreamError as exc:
            logger.warning("Registering %s without metadata: %s", video_id, exc)
            details = VideoDetails(description="", duration_sec=None)
        record = registry.add(
            VideoRecord(
                video_id=video_id,
                url=video_url,
                title=details.title or "",
                description=details.description,
                duration_sec=details.duration_sec,
                captions_path=captions_path,
            )
        )
        created = True

    candidates = detector.detect(video_id, DetectionMode.COMBINED)
    return SuggestionResult(
        video=record,
        candidates=candidates,
        status="created" if created else "existing",
        created=created,
        reused=not created,
        message=None if created else "Video already registered",
    )


def parse_mode(mode: str | DetectionMode) -> DetectionMode:
    if isinstance(mode, DetectionMode):
        return mode
    normalized = (mode or "").strip().lower()
    try:
        return DetectionMode(normalized)
    except ValueError as exc:
        expected = ", ".join(item.value for item in DetectionMode)
        raise ValidationError(f"Unsupported detection mode '{mode}'. Expected one of: {expected}.") from exc


def extract_video_id(url: str | None) -> str | None:
    """Pull the 11-character YouTube id from a watch, share or embed URL."""

    if not url:
        return None
    matched = VIDEO_ID_QUERY_PATTERN.search(url)
    if matched:
        return matched.group(1)

    segments = [segment for segment in urlparse(url.strip()).path.split("/") if segment]
    if segments and len(segments[-1]) == VIDEO_ID_LENGTH:
        return segments[-1]
    return None


def _soft(label: str, video_id: str, work: Callable[[], list[T]]) -> list[T]:
    try:
        return work()
    except UpstreamError as exc:
        logger.warning("Failed to fetch %s for %s: %s", label, video_id, exc)
        return []
