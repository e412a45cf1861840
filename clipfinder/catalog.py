from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from clipfinder.config import CaptionSettings
from clipfinder.errors import NotFoundError, UpstreamError
from clipfinder.models import CaptionSegment, VideoDetails, VideoRecord
from clipfinder.sources.captions import load_caption_segments

logger = logging.getLogger(__name__)


class JsonVideoCatalog:
    """Registered videos kept in a single JSON file.

    Serves as the video registry, as the metadata provider for detection
    (unknown ids raise NotFoundError) and as the caption provider reading each
    record's caption file.
    """

    def __init__(self, path: str | Path, caption_settings: CaptionSettings | None = None) -> None:
        self.path = Path(path).expanduser()
        self.caption_settings = caption_settings or CaptionSettings()

    def get(self, video_id: str) -> VideoRecord | None:
        row = self._load().get(video_id)
        if row is None:
            return None
        return _record_from_row(row)

    def add(self, record: VideoRecord) -> VideoRecord:
        rows = self._load()
        rows[record.video_id] = asdict(record)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(rows, indent=2, ensure_ascii=False, sort_keys=True), encoding="utf-8")
        logger.info("Saved video %s to %s", record.video_id, self.path)
        return record

    def get_video_description_and_duration(self, video_id: str) -> VideoDetails:
        record = self._require(video_id)
        return VideoDetails(
            description=record.description,
            duration_sec=record.duration_sec,
            title=record.title or None,
        )

    def get_caption_segments(self, video_id: str) -> list[CaptionSegment]:
        record = self._require(video_id)
        if not record.captions_path:
            return []
        try:
            return load_caption_segments(
                record.captions_path,
                duration_sec=record.duration_sec,
                settings=self.caption_settings,
            )
        except (OSError, UnicodeDecodeError) as exc:
            raise UpstreamError(f"Failed to read captions for {video_id}: {exc}") from exc

    def _require(self, video_id: str) -> VideoRecord:
        record = self.get(video_id)
        if record is None:
            raise NotFoundError(f"Video not registered: {video_id}")
        return record

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Video catalog is not valid JSON: {self.path} ({exc})") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"Video catalog must be a JSON object: {self.path}")
        return payload


def _record_from_row(row: dict[str, Any]) -> VideoRecord:
    duration = row.get("duration_sec")
    return VideoRecord(
        video_id=str(row["video_id"]),
        url=str(row.get("url") or ""),
        title=str(row.get("title") or ""),
        description=str(row.get("description") or ""),
        duration_sec=int(duration) if duration is not None else None,
        captions_path=str(row["captions_path"]) if row.get("captions_path") else None,
        metadata=dict(row.get("metadata") or {}),
    )
