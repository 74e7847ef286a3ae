from __future__ import annotations

import csv
import io
from datetime import datetime, timezone

from recruitops.workable.export import CSV_COLUMNS, candidates_to_csv, write_csv
from recruitops.workable.normalize import normalize_candidate


def test_csv_has_header_and_one_row_per_candidate(raw_candidate):
    synced_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
    candidates = [
        normalize_candidate(raw_candidate(1, linkedin_url="https://linkedin.com/in/one"), synced_at=synced_at),
        normalize_candidate(raw_candidate(5, experience_years=3), synced_at=synced_at),
    ]

    rows = list(csv.reader(io.StringIO(candidates_to_csv(candidates))))

    assert rows[0] == list(CSV_COLUMNS)
    first = dict(zip(CSV_COLUMNS, rows[1]))
    assert first["ID"] == "cand-0001"
    assert first["Location"] == "Berlin, Germany"
    assert first["Stage"] == "applied"
    assert first["Skills Count"] == "2"
    assert first["Skills"] == "Python; SQL"
    assert first["Experience Years"] == ""
    assert first["LinkedIn URL"] == "https://linkedin.com/in/one"
    second = dict(zip(CSV_COLUMNS, rows[2]))
    assert second["Experience Years"] == "3"
    assert second["Skills Count"] == "0"
    assert second["Email"] == ""


def test_empty_set_exports_header_only():
    assert candidates_to_csv([]) == ",".join(CSV_COLUMNS) + "\n"


def test_write_csv_creates_parent_directories(tmp_path):
    path = write_csv("ID\n1\n", tmp_path / "nested" / "out.csv")

    assert path.read_text(encoding="utf-8") == "ID\n1\n"
