from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace

from clipfinder.config import CaptionSettings, DetectionSettings
from clipfinder.models import Candidate, DetectionMode, SectionSource

logger = logging.getLogger(__name__)

MODE_SOURCES: dict[DetectionMode, tuple[SectionSource, ...]] = {
    DetectionMode.CHAPTERS: (
        SectionSource.VIDEO_DESCRIPTION,
        SectionSource.COMMENT,
        SectionSource.YOUTUBE_CHAPTER,
    ),
    DetectionMode.CAPTIONS: (SectionSource.CAPTION,),
    DetectionMode.COMBINED: tuple(SectionSource),
}


def merge_candidates(
    by_source: Mapping[SectionSource, list[Candidate]],
    mode: DetectionMode,
    *,
    detection: DetectionSettings | None = None,
    captions: CaptionSettings | None = None,
) -> list[Candidate]:
    """Merge per-source candidates into one ordered, non-overlapping list.

    Pipeline:
    1) keep only the sources the mode allows (comments yield to the description)
    2) drop weak caption candidates
    3) in combined mode, pin authored scores and suppress overlapping captions
    4) sort and sweep away candidates starting inside a retained range
    """

    detection = detection or DetectionSettings()
    captions = captions or CaptionSettings()

    participating = _participating_sources(by_source, mode)
    pool: list[Candidate] = []
    for source in participating:
        for candidate in by_source.get(source, []):
            if source is SectionSource.CAPTION and candidate.score < captions.min_score:
                continue
            pool.append(candidate)

    if mode is DetectionMode.COMBINED:
        pool = _prioritize_authored(pool, authored_score=detection.authored_score)

    merged = _sweep(pool)
    logger.debug(
        "Merged %d candidates from %s into %d (%s mode)",
        len(pool),
        [source.value for source in participating],
        len(merged),
        mode.value,
    )
    return merged


def ranges_overlap(first: Candidate, second: Candidate) -> bool:
    return first.start_sec < second.end_sec and second.start_sec < first.end_sec


def _participating_sources(
    by_source: Mapping[SectionSource, list[Candidate]],
    mode: DetectionMode,
) -> list[SectionSource]:
    allowed = list(MODE_SOURCES[mode])
    if mode is DetectionMode.CHAPTERS and by_source.get(SectionSource.VIDEO_DESCRIPTION):
        allowed.remove(SectionSource.COMMENT)
    return allowed


def _prioritize_authored(pool: list[Candidate], *, authored_score: float) -> list[Candidate]:
    authored = [
        replace(candidate, score=authored_score)
        for candidate in pool
        if candidate.source.is_authored
    ]
    captions = [
        candidate
        for candidate in pool
        if not candidate.source.is_authored
        and not any(ranges_overlap(candidate, chapter) for chapter in authored)
    ]
    return authored + captions


def _sweep(pool: list[Candidate]) -> list[Candidate]:
    ordered = sorted(
        pool,
        key=lambda candidate: (candidate.start_sec, -candidate.score, candidate.source.priority),
    )

    retained: list[Candidate] = []
    for candidate in ordered:
        if retained:
            last = retained[-1]
            if last.start_sec <= candidate.start_sec < last.end_sec:
                continue
        retained.append(candidate)
    return retained
