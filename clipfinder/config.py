from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "CLIPFINDER_"

# End of the last chapter when the video duration is unknown.
FALLBACK_SECTION_SECONDS = 45


class DetectionSettings(BaseModel):
    fallback_section_seconds: int = FALLBACK_SECTION_SECONDS
    chapter_score: float = 0.6
    keyword_bonus: float = 0.3
    out_of_order_score: float = 0.3
    authored_score: float = 1.0
    max_label_length: int = 120
    comment_page_size: int = 100


class CaptionSettings(BaseModel):
    density_weight: float = 0.4
    repetition_weight: float = 0.35
    keyword_weight: float = 0.25
    baseline_chars_per_second: float = 12.0
    keyword_saturation: int = 3
    # Longer caption labels are cut to this length and suffixed with "...".
    max_label_length: int = 40
    chunk_window_seconds: int = 30
    default_line_seconds: int = 30
    min_score: float = 0.0


class YouTubeSettings(BaseModel):
    api_key: str = ""
    base_url: str = "https://www.googleapis.com/youtube/v3"
    timeout_seconds: int = 15


class StorageSettings(BaseModel):
    catalog_path: Path = Path("data/catalog.json")


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    captions: CaptionSettings = Field(default_factory=CaptionSettings)
    youtube: YouTubeSettings = Field(default_factory=YouTubeSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides.

    A missing config file is not an error; defaults apply and environment
    overrides are still honoured.
    """

    resolved_path = Path(
        config_path
        or os.getenv(f"{ENV_PREFIX}CONFIG")
        or DEFAULT_CONFIG_PATH
    )
    raw_config: dict[str, Any] = {}
    if resolved_path.exists():
        raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path):
        return Path(raw_value)
    return raw_value
