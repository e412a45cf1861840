from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

import numpy as np

from clipfinder.config import CaptionSettings
from clipfinder.models import Candidate, CaptionSegment, SectionSource

SONG_KEYWORDS = ("chorus", "hook", "verse", "intro", "outro", "bridge", "refrain", "lyrics", "singing")
MUSIC_MARKERS = ("♪", "♫", "♬", "♩", "[music]", "(music)", "[음악]", "[音楽]", "[노래]", "[歌]")
KEYWORD_PATTERNS = (
    re.compile(r"\b(?:la|na|da|oh|ooh|woah|whoa|yeah|hey|baby)(?:[\s,~-]+(?:la|na|da|oh|ooh|woah|whoa|yeah|hey|baby)){1,}\b", re.IGNORECASE),
    re.compile(r"([aeiouy])\1{2,}", re.IGNORECASE),
    re.compile(r"[~〜]{2,}"),
)


@dataclass(slots=True)
class CaptionScoreDetails:
    """Explainable sub-scores behind one caption candidate."""

    score: float
    density: float
    repetition: float
    keywords: float
    chars_per_second: float


def score_captions(
    segments: list[CaptionSegment],
    settings: CaptionSettings | None = None,
) -> list[Candidate]:
    """Score every caption chunk for song likelihood; never drops a segment."""

    resolved = settings or CaptionSettings()
    details = explain_caption_scores(segments, resolved)

    candidates: list[Candidate] = []
    for position, (segment, detail) in enumerate(zip(segments, details), start=1):
        start = max(0, int(segment.start_sec))
        end = max(int(segment.end_sec), start + 1)
        candidates.append(
            Candidate(
                start_sec=start,
                end_sec=end,
                score=detail.score,
                label=_label_for(segment.text, position=position, max_length=resolved.max_label_length),
                source=SectionSource.CAPTION,
            )
        )
    return candidates


def explain_caption_scores(
    segments: list[CaptionSegment],
    settings: CaptionSettings | None = None,
) -> list[CaptionScoreDetails]:
    resolved = settings or CaptionSettings()
    weights = _resolve_weights(
        {
            "density": resolved.density_weight,
            "repetition": resolved.repetition_weight,
            "keywords": resolved.keyword_weight,
        }
    )
    rates = [_chars_per_second(segment) for segment in segments]
    baseline = corpus_baseline(rates, fallback=resolved.baseline_chars_per_second)
    normalized_lines = [_normalized_lines(segment.text) for segment in segments]

    details: list[CaptionScoreDetails] = []
    for index, segment in enumerate(segments):
        if not (segment.text or "").strip():
            details.append(CaptionScoreDetails(0.0, 0.0, 0.0, 0.0, 0.0))
            continue

        density = _clamp((rates[index] / baseline) / 2.0) if baseline > 0 else 0.0
        neighbours = [
            normalized_lines[neighbour]
            for neighbour in (index - 1, index + 1)
            if 0 <= neighbour < len(segments)
        ]
        repetition = repetition_score(normalized_lines[index], neighbours)
        keywords = keyword_score(segment.text, saturation=resolved.keyword_saturation)

        score = _clamp(
            weights.get("density", 0.0) * density
            + weights.get("repetition", 0.0) * repetition
            + weights.get("keywords", 0.0) * keywords
        )
        details.append(
            CaptionScoreDetails(
                score=score,
                density=density,
                repetition=repetition,
                keywords=keywords,
                chars_per_second=rates[index],
            )
        )
    return details


def corpus_baseline(rates: list[float], fallback: float = 12.0) -> float:
    """Median characters-per-second over segments that carry text."""

    positive = [rate for rate in rates if rate > 0]
    if not positive:
        return fallback
    return float(np.median(np.asarray(positive, dtype=float)))


def repetition_score(lines: list[str], neighbours: list[list[str]]) -> float:
    """Chorus signal: repeated lines, lines shared with neighbours, repeated bigrams."""

    if not lines:
        return 0.0

    duplicate_ratio = (len(lines) - len(set(lines))) / len(lines) * 2.0

    own = set(lines)
    shared = set()
    for neighbour in neighbours:
        shared |= own & set(neighbour)
    adjacent_ratio = len(shared) / len(own)

    tokens = " ".join(lines).split()
    bigrams = list(zip(tokens, tokens[1:]))
    bigram_ratio = 0.0
    if bigrams:
        bigram_ratio = (len(bigrams) - len(set(bigrams))) / len(bigrams) * 2.0

    return _clamp(max(duplicate_ratio, adjacent_ratio, bigram_ratio))


def keyword_score(text: str, saturation: int = 3) -> float:
    lowered = (text or "").lower()
    if not lowered.strip():
        return 0.0

    hits = sum(lowered.count(keyword) for keyword in SONG_KEYWORDS)
    hits += sum(lowered.count(marker) for marker in MUSIC_MARKERS)
    hits += sum(len(pattern.findall(lowered)) for pattern in KEYWORD_PATTERNS)
    return _clamp(hits / max(1, saturation))


def normalize_text(value: str) -> str:
    """Fold accents, case and punctuation so repeated lyrics compare equal."""

    decomposed = unicodedata.normalize("NFKD", value.strip())
    without_marks = "".join(char for char in decomposed if not unicodedata.combining(char))
    folded = "".join(char if char.isalnum() or char.isspace() else " " for char in without_marks.lower())
    return " ".join(folded.split())


def _normalized_lines(text: str) -> list[str]:
    lines = (normalize_text(line) for line in (text or "").splitlines())
    return [line for line in lines if line]


def _chars_per_second(segment: CaptionSegment) -> float:
    text = (segment.text or "").strip()
    if not text:
        return 0.0
    duration = max(1, int(segment.end_sec) - int(segment.start_sec))
    return len("".join(text.split())) / duration


def _label_for(text: str, *, position: int, max_length: int) -> str:
    first_line = next((line.strip() for line in (text or "").splitlines() if line.strip()), "")
    if not first_line:
        return f"Segment {position}"
    if len(first_line) <= max_length:
        return first_line
    return f"{first_line[:max_length]}..."


def _resolve_weights(weights: dict[str, float]) -> dict[str, float]:
    non_negative = {name: max(0.0, raw_weight) for name, raw_weight in weights.items()}
    total_weight = sum(non_negative.values())
    if total_weight == 0:
        return {}
    return {name: weight / total_weight for name, weight in non_negative.items()}


def _clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    return max(minimum, min(maximum, value))
