from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SectionSource(str, Enum):
    """Provenance of a candidate, declared in merge-priority order."""

    VIDEO_DESCRIPTION = "VIDEO_DESCRIPTION"
    COMMENT = "COMMENT"
    YOUTUBE_CHAPTER = "YOUTUBE_CHAPTER"
    CAPTION = "CAPTION"

    @property
    def priority(self) -> int:
        return _SOURCE_PRIORITY[self]

    @property
    def is_authored(self) -> bool:
        return self is not SectionSource.CAPTION


_SOURCE_PRIORITY = {source: rank for rank, source in enumerate(SectionSource)}


class DetectionMode(str, Enum):
    CHAPTERS = "chapters"
    CAPTIONS = "captions"
    COMBINED = "combined"


@dataclass(slots=True, frozen=True)
class RawMatch:
    """One timestamp hit at the start of a text line."""

    prefix_consumed: str
    minutes: int
    seconds: int
    label: str
    hours: int | None = None

    @property
    def start_seconds(self) -> int:
        return (self.hours or 0) * 3600 + self.minutes * 60 + self.seconds


@dataclass(slots=True)
class Candidate:
    """A detected time-range with a confidence score and provenance."""

    start_sec: int
    end_sec: int
    score: float
    label: str
    source: SectionSource

    def as_response(self) -> dict[str, Any]:
        return {
            "startSec": self.start_sec,
            "endSec": self.end_sec,
            "score": self.score,
            "label": self.label,
        }


@dataclass(slots=True)
class CaptionSegment:
    start_sec: int
    end_sec: int
    text: str


@dataclass(slots=True)
class VideoDetails:
    description: str
    duration_sec: int | None = None
    title: str | None = None


@dataclass(slots=True)
class CommentPage:
    bodies: list[str]
    next_page_token: str | None = None


@dataclass(slots=True)
class VideoRecord:
    """A registered video as kept by the catalog."""

    video_id: str
    url: str
    title: str = ""
    description: str = ""
    duration_sec: int | None = None
    captions_path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SuggestionResult:
    """Outcome of registering a video URL and detecting its candidates."""

    video: VideoRecord
    candidates: list[Candidate]
    status: str
    created: bool
    reused: bool
    message: str | None = None
