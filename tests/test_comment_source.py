from __future__ import annotations

import threading

from clipfinder.errors import UpstreamError
from clipfinder.models import CommentPage, SectionSource
from clipfinder.sources.comments import CommentSource


class _FakeComments:
    def __init__(self, pages: list[CommentPage | Exception]) -> None:
        self.pages = list(pages)
        self.calls: list[tuple[str, str | None, int]] = []

    def list_top_level_comments(self, video_id: str, page_token: str | None = None, page_size: int = 100) -> CommentPage:
        self.calls.append((video_id, page_token, page_size))
        page = self.pages.pop(0) if self.pages else CommentPage(bodies=[])
        if isinstance(page, Exception):
            raise page
        return page


def test_paginates_until_a_comment_has_a_chapter_list() -> None:
    provider = _FakeComments(
        [
            CommentPage(bodies=["Great video!"], next_page_token="NEXT_PAGE"),
            CommentPage(bodies=["00:00 Intro\n05:30 Main\n10:00 Outro"]),
        ]
    )

    candidates = CommentSource(provider).fetch("video123")

    assert len(provider.calls) == 2
    assert [call[1] for call in provider.calls] == [None, "NEXT_PAGE"]
    assert [call[2] for call in provider.calls] == [100, 100]
    assert len(candidates) == 3
    assert candidates[0].start_sec == 0
    assert all(candidate.source is SectionSource.COMMENT for candidate in candidates)


def test_stops_at_first_qualifying_comment_on_first_page() -> None:
    provider = _FakeComments(
        [
            CommentPage(
                bodies=["love it", "00:00 A\n01:00 B", "00:00 X\n00:10 Y\n00:20 Z"],
                next_page_token="P2",
            ),
            CommentPage(bodies=["00:00 never\n00:30 reached"]),
        ]
    )

    candidates = CommentSource(provider).fetch("vid", duration_sec=120)

    assert len(provider.calls) == 1
    assert [(c.start_sec, c.end_sec, c.label) for c in candidates] == [(0, 60, "A"), (60, 120, "B")]


def test_single_timestamp_comments_never_qualify() -> None:
    provider = _FakeComments([CommentPage(bodies=["01:23 lol", "at 2:00 wow", "03:10 best part"])])

    assert CommentSource(provider).fetch("vid") == []
    assert len(provider.calls) == 1


def test_upstream_failure_yields_empty_list() -> None:
    provider = _FakeComments(
        [
            CommentPage(bodies=["nothing"], next_page_token="P2"),
            UpstreamError("quota exceeded"),
        ]
    )

    assert CommentSource(provider).fetch("vid") == []
    assert len(provider.calls) == 2


def test_cancelled_before_start_issues_no_requests() -> None:
    provider = _FakeComments([CommentPage(bodies=["00:00 A\n01:00 B"])])
    cancel_event = threading.Event()
    cancel_event.set()

    assert CommentSource(provider).fetch("vid", cancel_event=cancel_event) == []
    assert provider.calls == []


def test_cancellation_is_checked_between_pages() -> None:
    cancel_event = threading.Event()

    class _CancellingComments(_FakeComments):
        def list_top_level_comments(self, video_id: str, page_token: str | None = None, page_size: int = 100) -> CommentPage:
            page = super().list_top_level_comments(video_id, page_token=page_token, page_size=page_size)
            cancel_event.set()
            return page

    provider = _CancellingComments(
        [
            CommentPage(bodies=["nothing"], next_page_token="P2"),
            CommentPage(bodies=["00:00 A\n01:00 B"]),
        ]
    )

    assert CommentSource(provider).fetch("vid", cancel_event=cancel_event) == []
    assert len(provider.calls) == 1


def test_repeated_continuation_token_stops_pagination() -> None:
    provider = _FakeComments([CommentPage(bodies=["meh"], next_page_token="SAME") for _ in range(5)])

    assert CommentSource(provider).fetch("vid") == []
    assert [call[1] for call in provider.calls] == [None, "SAME"]
