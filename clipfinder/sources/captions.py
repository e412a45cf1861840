from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

from clipfinder.config import CaptionSettings
from clipfinder.models import CaptionSegment

logger = logging.getLogger(__name__)


def parse_caption_track(
    raw: str | None,
    duration_sec: int | None = None,
    default_line_seconds: int = 30,
) -> list[CaptionSegment]:
    """Parse a stored caption payload into timeline-ordered caption lines.

    Two layouts are accepted: a JSON array of objects with ``start``/``offset``,
    ``text``/``content`` and optional ``end``/``duration``; or plain text with
    one ``start|text`` entry per line. Unparseable entries are skipped.
    """

    if not raw or not raw.strip():
        return []

    trimmed = raw.strip()
    entries: list[tuple[int, int | None, str]] = []
    if trimmed.startswith("["):
        try:
            nodes = json.loads(trimmed)
        except json.JSONDecodeError:
            logger.warning("Caption payload looks like JSON but failed to parse; trying line format.")
            nodes = None
        if isinstance(nodes, list):
            entries = _entries_from_json(nodes)
    if not entries:
        entries = _entries_from_lines(trimmed)

    entries.sort(key=lambda entry: entry[0])
    segments: list[CaptionSegment] = []
    for index, (start, explicit_end, text) in enumerate(entries):
        if explicit_end is not None and explicit_end > start:
            end = explicit_end
        else:
            later = next((entry[0] for entry in entries[index + 1 :] if entry[0] > start), None)
            end = later if later is not None else start + max(1, default_line_seconds)
        if duration_sec is not None and start < duration_sec < end:
            end = duration_sec
        segments.append(CaptionSegment(start_sec=start, end_sec=end, text=text))

    return segments


def chunk_caption_lines(lines: list[CaptionSegment], window_seconds: int = 30) -> list[CaptionSegment]:
    """Group consecutive caption lines into chunks of roughly ``window_seconds``."""

    if window_seconds <= 0:
        return list(lines)

    chunks: list[CaptionSegment] = []
    current: list[CaptionSegment] = []
    for line in lines:
        if current and line.start_sec - current[0].start_sec >= window_seconds:
            chunks.append(_join(current))
            current = []
        current.append(line)
    if current:
        chunks.append(_join(current))
    return chunks


def load_caption_segments(
    path: str | Path,
    duration_sec: int | None = None,
    settings: CaptionSettings | None = None,
) -> list[CaptionSegment]:
    """Read a caption file and return scored-ready chunks."""

    resolved = settings or CaptionSettings()
    caption_path = Path(path).expanduser()
    if not caption_path.exists():
        raise FileNotFoundError(f"Caption file not found: {caption_path}")

    lines = parse_caption_track(
        caption_path.read_text(encoding="utf-8"),
        duration_sec=duration_sec,
        default_line_seconds=resolved.default_line_seconds,
    )
    return chunk_caption_lines(lines, window_seconds=resolved.chunk_window_seconds)


def _entries_from_json(nodes: list[Any]) -> list[tuple[int, int | None, str]]:
    entries: list[tuple[int, int | None, str]] = []
    for node in nodes:
        if not isinstance(node, dict):
            continue
        start = _to_seconds(node.get("start", node.get("offset", 0)))
        if start is None:
            continue

        end = _to_seconds(node.get("end"))
        if end is None:
            duration = _to_seconds(node.get("duration", node.get("dur")))
            end = start + duration if duration else None

        text = node.get("text", node.get("content", ""))
        entries.append((start, end, "" if text is None else str(text).strip()))
    return entries


def _entries_from_lines(raw: str) -> list[tuple[int, int | None, str]]:
    entries: list[tuple[int, int | None, str]] = []
    for line in raw.splitlines():
        start_part, separator, text_part = line.partition("|")
        if not separator:
            continue
        start = _to_seconds(start_part)
        if start is None:
            continue
        entries.append((start, None, text_part.strip()))
    return entries


def _to_seconds(raw_value: Any) -> int | None:
    if raw_value is None or isinstance(raw_value, bool):
        return None
    try:
        value = float(str(raw_value).strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return int(math.floor(value))


def _join(lines: list[CaptionSegment]) -> CaptionSegment:
    return CaptionSegment(
        start_sec=lines[0].start_sec,
        end_sec=max(line.end_sec for line in lines),
        text="\n".join(line.text for line in lines if line.text),
    )
