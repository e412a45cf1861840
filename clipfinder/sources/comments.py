from __future__ import annotations

import logging
import threading

from clipfinder.config import DetectionSettings
from clipfinder.errors import UpstreamError
from clipfinder.extract.chapters import MIN_COMMENT_TIMESTAMPS, extract_chapters
from clipfinder.models import Candidate, SectionSource
from clipfinder.providers import CommentProvider

logger = logging.getLogger(__name__)


class CommentSource:
    """Find the first top-level comment that carries a chapter list.

    Pages are fetched strictly one after another: the first qualifying
    comment wins, so evaluation order matters.
    """

    def __init__(self, provider: CommentProvider, settings: DetectionSettings | None = None) -> None:
        self.provider = provider
        self.settings = settings or DetectionSettings()

    def fetch(
        self,
        video_id: str,
        duration_sec: int | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> list[Candidate]:
        page_token: str | None = None
        used_tokens: set[str] = set()
        page_index = 0

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Comment scan for %s cancelled after %d page(s)", video_id, page_index)
                return []

            try:
                page = self.provider.list_top_level_comments(
                    video_id,
                    page_token=page_token,
                    page_size=self.settings.comment_page_size,
                )
            except UpstreamError as exc:
                logger.warning("Failed to fetch comments for %s: %s", video_id, exc)
                return []

            page_index += 1
            logger.debug("Scanning comment page %d for %s (%d comments)", page_index, video_id, len(page.bodies))

            for body in page.bodies:
                candidates = extract_chapters(
                    body,
                    duration_sec=duration_sec,
                    source=SectionSource.COMMENT,
                    settings=self.settings,
                )
                if len(candidates) >= MIN_COMMENT_TIMESTAMPS:
                    logger.info(
                        "Found chapter comment for %s on page %d with %d timestamps",
                        video_id,
                        page_index,
                        len(candidates),
                    )
                    return candidates

            next_token = page.next_page_token
            if not next_token:
                return []
            if next_token in used_tokens:
                logger.warning("Comment pagination for %s repeated token %r; stopping", video_id, next_token)
                return []

            used_tokens.add(next_token)
            page_token = next_token
