"""Line-level timestamp grammar for chapter lists.

Recognizes lines shaped like ``[marker] [H:]MM:SS [separator] label`` where the
marker is an ordinal (``1.``, ``2)``, ``3 ``) or a bullet glyph. Anything that
does not fully fit the grammar is ignored rather than reported.
"""

from __future__ import annotations

import re

from clipfinder.models import RawMatch

# "â€¢" is a UTF-8 bullet decoded as cp1252, common in scraped descriptions.
BULLET_GLYPHS = ("â€¢", "•", "·", "-", "*")

_BULLET_PATTERN = "|".join(re.escape(glyph) for glyph in BULLET_GLYPHS)

TIMESTAMP_LINE_PATTERN = re.compile(
    rf"""
    ^
    (?P<prefix>
        \d{{1,3}}\s*[.)\-]\s*
      | \d{{1,3}}\s+
      | (?:{_BULLET_PATTERN})\s*
    )?
    (?P<open>[\[(])?
    (?:(?P<hours>\d{{1,2}})[:：])?
    (?P<minutes>\d{{1,2}})[:：](?P<seconds>\d{{2}})
    (?![\d:：])
    (?(open)[\])])
    \s*(?:[-–—|:]\s*)?
    (?P<label>.*)
    $
    """,
    re.VERBOSE,
)

_INVISIBLE_LEADING = "\ufeff\u200b\u200e\u200f"


def match_line(line: str) -> RawMatch | None:
    """Match one line against the grammar; only the leading timestamp counts."""

    trimmed = line.strip().lstrip(_INVISIBLE_LEADING).strip()
    if not trimmed:
        return None

    matched = TIMESTAMP_LINE_PATTERN.match(trimmed)
    if matched is None:
        return None

    hours = int(matched.group("hours")) if matched.group("hours") is not None else None
    minutes = int(matched.group("minutes"))
    seconds = int(matched.group("seconds"))

    if seconds >= 60:
        return None
    if hours is not None and minutes >= 60:
        return None

    return RawMatch(
        prefix_consumed=(matched.group("prefix") or "").strip(),
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        label=matched.group("label").strip(),
    )


def find_matches(text: str | None) -> list[RawMatch]:
    """Return every matching line of a text block in document order."""

    if not text:
        return []

    matches: list[RawMatch] = []
    for line in text.splitlines():
        raw_match = match_line(line)
        if raw_match is not None:
            matches.append(raw_match)
    return matches


def format_timestamp(total_seconds: int) -> str:
    """Render seconds back to ``M:SS`` or ``H:MM:SS``."""

    hours, remainder = divmod(max(0, int(total_seconds)), 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"
