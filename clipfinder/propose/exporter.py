from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from clipfinder.extract.timestamp_grammar import format_timestamp
from clipfinder.models import Candidate


def export_candidates(candidates: list[Candidate], output_path: str | Path) -> Path:
    """Export candidates to JSON (default) or CSV, based on file extension."""

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.suffix.lower() == ".csv":
        _write_csv(candidates, path)
    else:
        _write_json(candidates, path)

    return path


def candidates_payload(candidates: list[Candidate], *, include_source: bool = False) -> list[dict[str, Any]]:
    """Response-shaped rows, optionally tagged with provenance for review."""

    rows: list[dict[str, Any]] = []
    for candidate in candidates:
        row = candidate.as_response()
        if include_source:
            row["source"] = candidate.source.value
        rows.append(row)
    return rows


def _write_json(candidates: list[Candidate], path: Path) -> None:
    payload = candidates_payload(candidates, include_source=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def _write_csv(candidates: list[Candidate], path: Path) -> None:
    fields = [
        "start_sec",
        "end_sec",
        "start",
        "end",
        "score",
        "confidence",
        "label",
        "source",
    ]

    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=fields)
        writer.writeheader()
        for candidate in candidates:
            writer.writerow(
                {
                    "start_sec": candidate.start_sec,
                    "end_sec": candidate.end_sec,
                    "start": format_timestamp(candidate.start_sec),
                    "end": format_timestamp(candidate.end_sec),
                    "score": f"{candidate.score:.4f}",
                    "confidence": confidence_label(candidate.score),
                    "label": candidate.label,
                    "source": candidate.source.value,
                }
            )


def confidence_label(score: float) -> str:
    if score >= 0.8:
        return "high"
    if score >= 0.6:
        return "medium"
    return "low"
