from __future__ import annotations

import logging

from clipfinder.config import DetectionSettings
from clipfinder.extract.timestamp_grammar import find_matches
from clipfinder.models import Candidate, RawMatch, SectionSource

logger = logging.getLogger(__name__)

MIN_COMMENT_TIMESTAMPS = 2
CHAPTER_KEYWORDS = ("chorus", "hook", "verse", "intro", "outro")


def extract_chapters(
    text: str | None,
    duration_sec: int | None = None,
    source: SectionSource = SectionSource.VIDEO_DESCRIPTION,
    settings: DetectionSettings | None = None,
) -> list[Candidate]:
    """Turn a chapter-list text blob into candidates in document order.

    Pipeline:
    1) match each line against the timestamp grammar
    2) drop repeated start times (first occurrence wins)
    3) reject single-timestamp comments
    4) resolve end boundaries and labels, score out-of-order lines lower
    """

    resolved = settings or DetectionSettings()
    matches = _dedupe_starts(find_matches(text))
    if not matches:
        return []

    if source is SectionSource.COMMENT and len(matches) < MIN_COMMENT_TIMESTAMPS:
        return []

    starts = [match.start_seconds for match in matches]
    candidates: list[Candidate] = []
    latest_start = -1

    for position, match in enumerate(matches, start=1):
        start = starts[position - 1]
        end = _resolve_end(
            start=start,
            later_starts=starts[position:],
            duration_sec=duration_sec,
            fallback_seconds=resolved.fallback_section_seconds,
        )
        label = _normalize_label(match.label, position=position, max_length=resolved.max_label_length)

        if start < latest_start:
            score = resolved.out_of_order_score
        else:
            score = _chapter_score(label, resolved)
        latest_start = max(latest_start, start)

        candidates.append(
            Candidate(
                start_sec=start,
                end_sec=end,
                score=_clamp(score),
                label=label,
                source=source,
            )
        )

    logger.debug("Extracted %d %s candidates", len(candidates), source.value)
    return candidates


def _dedupe_starts(matches: list[RawMatch]) -> list[RawMatch]:
    seen: set[int] = set()
    unique: list[RawMatch] = []
    for match in matches:
        if match.start_seconds in seen:
            continue
        seen.add(match.start_seconds)
        unique.append(match)
    return unique


def _resolve_end(
    *,
    start: int,
    later_starts: list[int],
    duration_sec: int | None,
    fallback_seconds: int,
) -> int:
    next_start = next((value for value in later_starts if value > start), None)

    if next_start is not None:
        end = next_start
    elif duration_sec is not None and duration_sec > start:
        end = duration_sec
    else:
        end = start + max(1, fallback_seconds)

    if duration_sec is not None and start < duration_sec < end:
        end = duration_sec
    return end


def _chapter_score(label: str, settings: DetectionSettings) -> float:
    score = settings.chapter_score
    lowered = label.lower()
    if any(keyword in lowered for keyword in CHAPTER_KEYWORDS):
        score += settings.keyword_bonus
    return score


def _normalize_label(label: str, *, position: int, max_length: int) -> str:
    trimmed = label.strip()
    if not trimmed:
        return f"Segment {position}"
    if len(trimmed) > max_length:
        return trimmed[:max_length].rstrip()
    return trimmed


def _clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    return max(minimum, min(maximum, value))
