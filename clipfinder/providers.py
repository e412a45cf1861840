from __future__ import annotations

from typing import Protocol

from clipfinder.models import Candidate, CaptionSegment, CommentPage, VideoDetails, VideoRecord


class MetadataProvider(Protocol):
    def get_video_description_and_duration(self, video_id: str) -> VideoDetails:
        """Return description and duration; raise NotFoundError for unknown ids."""


class CommentProvider(Protocol):
    def list_top_level_comments(
        self,
        video_id: str,
        page_token: str | None = None,
        page_size: int = 100,
    ) -> CommentPage:
        """Return one page of top-level comment bodies and the continuation token."""


class CaptionProvider(Protocol):
    def get_caption_segments(self, video_id: str) -> list[CaptionSegment]:
        """Return caption chunks in timeline order."""


class ChapterProvider(Protocol):
    def list_platform_chapters(self, video_id: str, duration_sec: int | None = None) -> list[Candidate]:
        """Return chapters declared on the hosting platform itself."""


class CredentialProvider(Protocol):
    def get_video_auth_credential(self) -> str:
        """Return the opaque key used by the network-backed providers."""


class VideoRegistry(Protocol):
    def get(self, video_id: str) -> VideoRecord | None:
        """Return the stored record for a video id, if registered."""

    def add(self, record: VideoRecord) -> VideoRecord:
        """Store a video record, replacing any record with the same id."""
