"""CSV export of a canonical candidate set."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable, Sequence

from .normalize import CanonicalCandidate

CSV_COLUMNS: Sequence[str] = (
    "ID",
    "Name",
    "Email",
    "Phone",
    "Location",
    "State",
    "Stage",
    "Skills Count",
    "Applications Count",
    "Experience Years",
    "Created At",
    "Resume URL",
    "LinkedIn URL",
    "Skills",
)


def _row(candidate: CanonicalCandidate) -> list:
    return [
        candidate.external_id,
        candidate.name,
        candidate.email or "",
        candidate.phone or "",
        candidate.location or "",
        candidate.upstream_state or "",
        candidate.interview_stage.value,
        len(candidate.skills),
        candidate.application_count,
        "" if candidate.experience_years is None else candidate.experience_years,
        candidate.created_at or "",
        candidate.resume_url or "",
        candidate.linkedin_profile_url or "",
        "; ".join(candidate.skills),
    ]


def candidates_to_csv(candidates: Iterable[CanonicalCandidate]) -> str:
    """Render ``candidates`` as CSV text with a header row."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for candidate in candidates:
        writer.writerow(_row(candidate))
    return buffer.getvalue()


def write_csv(csv_text: str, path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(csv_text, encoding="utf-8")
    return target
