from __future__ import annotations

import math
import re
from typing import Any

from clipfinder.config import DetectionSettings
from clipfinder.models import Candidate, SectionSource

ISO_8601_DURATION = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?$", re.IGNORECASE)
MIN_PLATFORM_SECTION_SECONDS = 5


def chapters_from_platform(
    chapter_nodes: list[dict[str, Any]],
    duration_sec: int | None = None,
    settings: DetectionSettings | None = None,
) -> list[Candidate]:
    """Convert platform chapter entries into YOUTUBE_CHAPTER candidates."""

    resolved = settings or DetectionSettings()
    candidates: list[Candidate] = []

    for position, node in enumerate(chapter_nodes, start=1):
        if not isinstance(node, dict):
            continue

        start = parse_chapter_boundary(node.get("startTime"))
        if start is None:
            continue

        end = parse_chapter_boundary(node.get("endTime"))
        if end is None or end <= start:
            end = start + resolved.fallback_section_seconds
        if duration_sec is not None:
            end = min(end, duration_sec)
        end = max(end, start + MIN_PLATFORM_SECTION_SECONDS)

        title = str(node.get("title") or "").strip()
        label = title[: resolved.max_label_length] if title else f"Segment {position}"

        candidates.append(
            Candidate(
                start_sec=start,
                end_sec=end,
                score=resolved.chapter_score,
                label=label,
                source=SectionSource.YOUTUBE_CHAPTER,
            )
        )

    return candidates


def parse_chapter_boundary(raw_value: Any) -> int | None:
    """Parse a chapter boundary given as seconds, milliseconds or ISO-8601.

    Accepts plain numbers (seconds), ``"1500ms"``, ``"PT1M30S"``, numeric
    strings, and nested objects carrying ``seconds``/``offsetSeconds`` or
    ``offsetMs``/``ms`` keys.
    """

    if raw_value is None or isinstance(raw_value, bool):
        return None

    if isinstance(raw_value, dict):
        for key in ("seconds", "offsetSeconds"):
            parsed = _parse_seconds(raw_value.get(key))
            if parsed is not None:
                return parsed
        for key in ("offsetMs", "ms"):
            parsed = _parse_milliseconds(raw_value.get(key))
            if parsed is not None:
                return parsed
        return None

    return _parse_seconds(raw_value)


def parse_iso_duration(raw_value: str | None) -> int | None:
    """Parse ``PT#H#M#S`` durations as returned by the Data API."""

    if not raw_value:
        return None
    matched = ISO_8601_DURATION.match(raw_value.strip())
    if matched is None:
        return None
    hours, minutes, seconds = matched.groups()
    total = int(hours or 0) * 3600 + int(minutes or 0) * 60 + float(seconds or 0)
    return int(math.floor(total))


def _parse_seconds(raw_value: Any) -> int | None:
    if raw_value is None or isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int | float):
        return _non_negative_floor(float(raw_value))
    if not isinstance(raw_value, str):
        return None

    text = raw_value.strip()
    if not text:
        return None
    if text.endswith("ms"):
        return _parse_milliseconds(text[:-2])
    if text.upper().startswith("PT"):
        return parse_iso_duration(text)
    try:
        return _non_negative_floor(float(text))
    except ValueError:
        return None


def _parse_milliseconds(raw_value: Any) -> int | None:
    if raw_value is None or isinstance(raw_value, bool):
        return None
    try:
        value = float(str(raw_value).strip())
    except ValueError:
        return None
    return _non_negative_floor(value / 1000.0)


def _non_negative_floor(value: float) -> int | None:
    if not math.isfinite(value) or value < 0:
        return None
    return int(math.floor(value))
