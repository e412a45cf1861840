from __future__ import annotations

import pytest

from clipfinder.errors import NotFoundError, UpstreamError, ValidationError
from clipfinder.models import (
    Candidate,
    CaptionSegment,
    CommentPage,
    DetectionMode,
    SectionSource,
    VideoDetails,
    VideoRecord,
)
from clipfinder.pipeline import ClipDetector, extract_video_id, parse_mode, register_and_detect


class _FakeMetadata:
    def __init__(self, videos: dict[str, VideoDetails | Exception]) -> None:
        self.videos = videos
        self.calls: list[str] = []

    def get_video_description_and_duration(self, video_id: str) -> VideoDetails:
        self.calls.append(video_id)
        if video_id not in self.videos:
            raise NotFoundError(f"Video not registered: {video_id}")
        value = self.videos[video_id]
        if isinstance(value, Exception):
            raise value
        return value


class _FakeComments:
    def __init__(self, pages: list[CommentPage] | Exception) -> None:
        self.pages = pages
        self.calls: list[str | None] = []

    def list_top_level_comments(self, video_id: str, page_token: str | None = None, page_size: int = 100) -> CommentPage:
        self.calls.append(page_token)
        if isinstance(self.pages, Exception):
            raise self.pages
        return self.pages[len(self.calls) - 1]


class _FakeCaptions:
    def __init__(self, segments: list[CaptionSegment] | Exception) -> None:
        self.segments = segments
        self.calls = 0

    def get_caption_segments(self, video_id: str) -> list[CaptionSegment]:
        self.calls += 1
        if isinstance(self.segments, Exception):
            raise self.segments
        return list(self.segments)


class _FakeChapters:
    def __init__(self, chapters: list[Candidate] | Exception) -> None:
        self.chapters = chapters

    def list_platform_chapters(self, video_id: str, duration_sec: int | None = None) -> list[Candidate]:
        if isinstance(self.chapters, Exception):
            raise self.chapters
        return list(self.chapters)


class _MemoryRegistry:
    def __init__(self, records: list[VideoRecord] | None = None) -> None:
        self.records = {record.video_id: record for record in records or []}
        self.added: list[VideoRecord] = []

    def get(self, video_id: str) -> VideoRecord | None:
        return self.records.get(video_id)

    def add(self, record: VideoRecord) -> VideoRecord:
        self.records[record.video_id] = record
        self.added.append(record)
        return record


SONG_CAPTIONS = [
    CaptionSegment(0, 15, "♪ la la la ♪\nla la la\nbaby baby oh"),
    CaptionSegment(30, 50, "♪ na na na ♪\nna na na"),
    CaptionSegment(130, 150, "♪ oh oh oh ♪\noh oh oh\nyeah yeah"),
]


def _spans(candidates: list[Candidate]) -> list[tuple[int, int, str]]:
    return [(candidate.start_sec, candidate.end_sec, candidate.label) for candidate in candidates]


def test_chapters_mode_uses_description_and_skips_comments() -> None:
    metadata = _FakeMetadata({"video123": VideoDetails("1. 00:20 Song A\n2) 00:55 Song B", 120)})
    comments = _FakeComments([CommentPage(bodies=["00:00 X\n00:10 Y"])])

    detector = ClipDetector(metadata, comments=comments)
    candidates = detector.detect("video123", "chapters")

    assert _spans(candidates) == [(20, 55, "Song A"), (55, 120, "Song B")]
    assert comments.calls == []
    assert all(candidate.source is SectionSource.VIDEO_DESCRIPTION for candidate in candidates)


def test_chapters_mode_falls_back_to_comments_across_pages() -> None:
    metadata = _FakeMetadata({"video123": VideoDetails("no chapters here", 900)})
    comments = _FakeComments(
        [
            CommentPage(bodies=["Great video!"], next_page_token="NEXT_PAGE"),
            CommentPage(bodies=["00:00 Intro\n05:30 Main\n10:00 Outro"]),
        ]
    )

    candidates = ClipDetector(metadata, comments=comments).detect("video123", DetectionMode.CHAPTERS)

    assert comments.calls == [None, "NEXT_PAGE"]
    assert _spans(candidates) == [(0, 330, "Intro"), (330, 600, "Main"), (600, 900, "Outro")]
    assert all(candidate.source is SectionSource.COMMENT for candidate in candidates)


@pytest.mark.parametrize("mode", ["CHAPTERS", " Combined ", "captions"])
def test_mode_is_case_insensitive(mode: str) -> None:
    assert parse_mode(mode).value == mode.strip().lower()


def test_invalid_mode_is_rejected_before_any_fetch() -> None:
    metadata = _FakeMetadata({"video123": VideoDetails("00:10 A", 100)})

    with pytest.raises(ValidationError, match="Unsupported detection mode 'bogus'"):
        ClipDetector(metadata).detect("video123", "bogus")
    assert metadata.calls == []


@pytest.mark.parametrize("video_id", ["", "   ", None])
def test_blank_video_id_is_rejected(video_id: str | None) -> None:
    metadata = _FakeMetadata({})

    with pytest.raises(ValidationError, match="videoId is required"):
        ClipDetector(metadata).detect(video_id)  # type: ignore[arg-type]
    assert metadata.calls == []


def test_unknown_video_propagates_not_found() -> None:
    with pytest.raises(NotFoundError):
        ClipDetector(_FakeMetadata({})).detect("missing")


def test_failing_sources_degrade_to_empty() -> None:
    metadata = _FakeMetadata({"video123": UpstreamError("metadata down")})
    detector = ClipDetector(
        metadata,
        comments=_FakeComments(UpstreamError("quota")),
        captions=_FakeCaptions(UpstreamError("captions down")),
        chapters=_FakeChapters(UpstreamError("chapters down")),
    )

    assert detector.detect("video123", "combined") == []
    assert detector.detect("video123", "captions") == []
    assert detector.detect("video123", "chapters") == []


def test_captions_mode_scores_every_chunk() -> None:
    metadata = _FakeMetadata({"video123": VideoDetails("00:10 ignored", 200)})
    captions = _FakeCaptions(SONG_CAPTIONS)

    candidates = ClipDetector(metadata, captions=captions).detect("video123", "captions")

    assert [(c.start_sec, c.end_sec) for c in candidates] == [(0, 15), (30, 50), (130, 150)]
    assert all(c.source is SectionSource.CAPTION for c in candidates)
    assert all(0.0 <= c.score <= 1.0 for c in candidates)


def test_combined_mode_prefers_authored_ranges_over_captions() -> None:
    metadata = _FakeMetadata({"video123": VideoDetails("00:20 Song A\n00:55 Song B", 120)})
    detector = ClipDetector(
        metadata,
        comments=_FakeComments([CommentPage(bodies=[])]),
        captions=_FakeCaptions(SONG_CAPTIONS),
        chapters=_FakeChapters([]),
    )

    candidates = detector.detect("video123")

    assert [(c.start_sec, c.end_sec, c.source) for c in candidates] == [
        (0, 15, SectionSource.CAPTION),
        (20, 55, SectionSource.VIDEO_DESCRIPTION),
        (55, 120, SectionSource.VIDEO_DESCRIPTION),
        (130, 150, SectionSource.CAPTION),
    ]
    assert candidates[1].score == pytest.approx(1.0)
    assert candidates[2].score == pytest.approx(1.0)
    for earlier, later in zip(candidates, candidates[1:]):
        assert earlier.start_sec <= later.start_sec


def test_combined_mode_queries_comments_even_with_description_chapters() -> None:
    metadata = _FakeMetadata({"video123": VideoDetails("00:20 Song A", 120)})
    comments = _FakeComments([CommentPage(bodies=[])])

    ClipDetector(metadata, comments=comments).detect("video123", "combined")

    assert comments.calls == [None]


@pytest.mark.parametrize("count", [1, 2, 5, 12])
def test_n_ordered_chapters_yield_n_contiguous_candidates(count: int) -> None:
    starts = [index * 60 for index in range(count)]
    description = "\n".join(f"{start // 60:02d}:00 Part {index + 1}" for index, start in enumerate(starts))
    duration = starts[-1] + 90
    metadata = _FakeMetadata({"video123": VideoDetails(description, duration)})

    candidates = ClipDetector(metadata).detect("video123", "chapters")

    assert [c.start_sec for c in candidates] == starts
    assert [c.end_sec for c in candidates] == starts[1:] + [duration]


def test_register_and_detect_creates_then_reuses() -> None:
    details = VideoDetails("00:20 Song A\n00:55 Song B", 120, title="Live set")
    metadata = _FakeMetadata({"abcdefghijk": details})
    registry = _MemoryRegistry()
    detector = ClipDetector(metadata)
    url = "https://www.youtube.com/watch?v=abcdefghijk&t=10s"

    first = register_and_detect(url, registry=registry, metadata=metadata, detector=detector)
    second = register_and_detect(url, registry=registry, metadata=metadata, detector=detector)

    assert (first.status, first.created, first.reused, first.message) == ("created", True, False, None)
    assert first.video.title == "Live set"
    assert first.video.duration_sec == 120
    assert (second.status, second.created, second.reused) == ("existing", False, True)
    assert second.message == "Video already registered"
    assert len(registry.added) == 1
    assert _spans(first.candidates) == _spans(second.candidates) == [(20, 55, "Song A"), (55, 120, "Song B")]


def test_register_and_detect_records_new_captions_for_existing_video() -> None:
    metadata = _FakeMetadata({"abcdefghijk": VideoDetails("00:20 Song A", 120)})
    registry = _MemoryRegistry([VideoRecord(video_id="abcdefghijk", url="https://youtu.be/abcdefghijk")])
    detector = ClipDetector(metadata)
    url = "https://youtu.be/abcdefghijk"

    updated = register_and_detect(url, registry=registry, metadata=metadata, detector=detector, captions_path="caps.json")
    repeated = register_and_detect(url, registry=registry, metadata=metadata, detector=detector, captions_path="caps.json")

    assert (updated.status, updated.reused) == ("existing", True)
    assert updated.video.captions_path == "caps.json"
    assert registry.get("abcdefghijk").captions_path == "caps.json"
    assert repeated.video.captions_path == "caps.json"
    assert len(registry.added) == 1


def test_register_and_detect_rejects_unparseable_url() -> None:
    with pytest.raises(ValidationError, match="Unable to parse videoId from URL"):
        register_and_detect(
            "https://example.com/nope",
            registry=_MemoryRegistry(),
            metadata=_FakeMetadata({}),
            detector=ClipDetector(_FakeMetadata({})),
        )


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://youtu.be/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/embed/dQw4w9WgXcQ/", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/shorts/dQw4w9WgXcQ?si=abc", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/watch?v=short", None),
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQx", None),
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ#t=30", "dQw4w9WgXcQ"),
        ("", None),
        (None, None),
    ],
)
def test_extract_video_id(url: str | None, expected: str | None) -> None:
    assert extract_video_id(url) == expected
