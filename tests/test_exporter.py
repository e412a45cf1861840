from __future__ import annotations

import csv
import json

from clipfinder.models import Candidate, SectionSource
from clipfinder.propose.exporter import candidates_payload, confidence_label, export_candidates


def _sample_candidates() -> list[Candidate]:
    return [
        Candidate(start_sec=20, end_sec=55, score=1.0, label="Song A", source=SectionSource.VIDEO_DESCRIPTION),
        Candidate(start_sec=3661, end_sec=3700, score=0.4321, label="la la la", source=SectionSource.CAPTION),
    ]


def test_candidates_payload_matches_response_shape() -> None:
    rows = candidates_payload(_sample_candidates())

    assert rows[0] == {"startSec": 20, "endSec": 55, "score": 1.0, "label": "Song A"}
    assert set(rows[1]) == {"startSec", "endSec", "score", "label"}


def test_candidates_payload_can_include_source() -> None:
    rows = candidates_payload(_sample_candidates(), include_source=True)

    assert [row["source"] for row in rows] == ["VIDEO_DESCRIPTION", "CAPTION"]


def test_export_candidates_json(tmp_path) -> None:
    out = tmp_path / "nested" / "candidates.json"

    path = export_candidates(_sample_candidates(), out)

    assert path == out
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload[0]["startSec"] == 20
    assert payload[0]["source"] == "VIDEO_DESCRIPTION"
    assert payload[1]["label"] == "la la la"


def test_export_candidates_csv_has_readable_timestamps(tmp_path) -> None:
    out = tmp_path / "candidates.csv"

    export_candidates(_sample_candidates(), out)

    with out.open("r", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))

    assert rows[0]["start"] == "0:20"
    assert rows[0]["end"] == "0:55"
    assert rows[0]["confidence"] == "high"
    assert rows[1]["start"] == "1:01:01"
    assert rows[1]["score"] == "0.4321"
    assert rows[1]["confidence"] == "low"
    assert rows[1]["source"] == "CAPTION"


def test_confidence_label_thresholds() -> None:
    assert confidence_label(0.8) == "high"
    assert confidence_label(0.6) == "medium"
    assert confidence_label(0.59) == "low"
