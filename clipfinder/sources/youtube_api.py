from __future__ import annotations

import json
import logging
import os
from typing import Any
from urllib import parse, request
from urllib.error import HTTPError, URLError

from clipfinder.config import DetectionSettings, YouTubeSettings
from clipfinder.errors import NotFoundError, UpstreamError
from clipfinder.extract.platform_chapters import chapters_from_platform, parse_iso_duration
from clipfinder.models import Candidate, CommentPage, VideoDetails
from clipfinder.providers import CredentialProvider

logger = logging.getLogger(__name__)

API_KEY_ENV = "YOUTUBE_API_KEY"


class EnvCredentialProvider:
    """API key from configuration, falling back to ``YOUTUBE_API_KEY``."""

    def __init__(self, api_key: str | None = None) -> None:
        self.api_key = (api_key or "").strip()

    def get_video_auth_credential(self) -> str:
        key = self.api_key or os.getenv(API_KEY_ENV, "").strip()
        if not key:
            raise UpstreamError("YouTube API key is missing; set youtube.api_key or YOUTUBE_API_KEY.")
        return key


class YouTubeDataClient:
    """Minimal YouTube Data API v3 client for descriptions, comments and chapters."""

    def __init__(
        self,
        settings: YouTubeSettings | None = None,
        credentials: CredentialProvider | None = None,
        detection: DetectionSettings | None = None,
    ) -> None:
        self.settings = settings or YouTubeSettings()
        self.credentials = credentials or EnvCredentialProvider(self.settings.api_key)
        self.detection = detection or DetectionSettings()

    def get_video_description_and_duration(self, video_id: str) -> VideoDetails:
        item = self._first_item("videos", {"part": "snippet,contentDetails", "id": video_id})
        if item is None:
            raise NotFoundError(f"Video not found on YouTube: {video_id}")

        snippet = _as_dict(item.get("snippet"))
        duration = _as_dict(item.get("contentDetails")).get("duration")
        title = snippet.get("title")
        return VideoDetails(
            description=str(snippet.get("description") or ""),
            duration_sec=parse_iso_duration(duration) if isinstance(duration, str) else None,
            title=str(title) if title else None,
        )

    def list_top_level_comments(
        self,
        video_id: str,
        page_token: str | None = None,
        page_size: int = 100,
    ) -> CommentPage:
        params: dict[str, Any] = {
            "part": "snippet",
            "videoId": video_id,
            "maxResults": page_size,
            "order": "relevance",
            "textFormat": "plainText",
        }
        if page_token:
            params["pageToken"] = page_token

        payload = self._get_json("commentThreads", params)
        bodies: list[str] = []
        items = payload.get("items")
        for item in items if isinstance(items, list) else []:
            text = _comment_text(item)
            if text:
                bodies.append(text)

        next_token = payload.get("nextPageToken")
        return CommentPage(bodies=bodies, next_page_token=str(next_token) if next_token else None)

    def list_platform_chapters(self, video_id: str, duration_sec: int | None = None) -> list[Candidate]:
        item = self._first_item("videos", {"part": "chapters", "id": video_id})
        if item is None:
            return []

        chapter_nodes = _as_dict(item.get("chapters")).get("chapters")
        if not isinstance(chapter_nodes, list):
            return []
        return chapters_from_platform(chapter_nodes, duration_sec=duration_sec, settings=self.detection)

    def _first_item(self, resource: str, params: dict[str, Any]) -> dict[str, Any] | None:
        items = self._get_json(resource, params).get("items") or []
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return None
        return items[0]

    def _get_json(self, resource: str, params: dict[str, Any]) -> dict[str, Any]:
        query = parse.urlencode({**params, "key": self.credentials.get_video_auth_credential()})
        url = f"{self.settings.base_url.rstrip('/')}/{resource}?{query}"
        logger.debug("GET %s/%s %s", self.settings.base_url.rstrip("/"), resource, _redact(params))
        return _request_json(url, timeout_seconds=self.settings.timeout_seconds)


def _request_json(url: str, *, timeout_seconds: int) -> dict[str, Any]:
    req = request.Request(url, method="GET", headers={"Accept": "application/json"})

    try:
        with request.urlopen(req, timeout=timeout_seconds) as response:
            payload = json.loads(response.read().decode("utf-8"))
    except HTTPError as exc:
        raise UpstreamError(f"YouTube API returned HTTP {exc.code}: {exc.reason}") from exc
    except (URLError, TimeoutError, OSError) as exc:
        raise UpstreamError(f"YouTube API request failed: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise UpstreamError("YouTube API returned invalid JSON.") from exc

    if not isinstance(payload, dict):
        raise UpstreamError("YouTube API returned an unexpected payload shape.")
    return payload


def _comment_text(item: Any) -> str:
    thread = _as_dict(_as_dict(item).get("snippet"))
    snippet = _as_dict(_as_dict(thread.get("topLevelComment")).get("snippet"))
    text = snippet.get("textDisplay") or snippet.get("textOriginal") or ""
    return text if isinstance(text, str) else ""


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _redact(params: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in params.items() if key != "key"}
