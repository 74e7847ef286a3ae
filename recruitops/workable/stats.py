"""
Aggregate statistics over a canonical candidate set.

Everything here is a pure, total function of its input: an empty set yields
zero counts and zero percentages rather than an error.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

from .normalize import CanonicalCandidate

DEFAULT_TOP_SKILLS = 20
DEFAULT_TOP_LOCATIONS = 15
DEFAULT_RECENT_LIMIT = 10

COVERAGE_CHECKS: Mapping[str, Callable[[CanonicalCandidate], bool]] = {
    "with_email": lambda c: bool(c.email),
    "with_phone": lambda c: bool(c.phone),
    "with_resume": lambda c: bool(c.resume_url),
    "with_linkedin": lambda c: bool(c.linkedin_profile_url),
    "with_skills": lambda c: len(c.skills) > 0,
    "with_applications": lambda c: c.application_count > 0,
    "active_candidates": lambda c: c.is_active,
}

PERCENTAGE_KEYS: Mapping[str, str] = {
    "email_coverage": "with_email",
    "phone_coverage": "with_phone",
    "resume_coverage": "with_resume",
    "linkedin_coverage": "with_linkedin",
    "skills_coverage": "with_skills",
    "active_candidates": "active_candidates",
}


def percentage(count: int, total: int) -> int:
    """``count / total`` as a whole percentage, rounding halves up; 0 when ``total`` is 0."""

    if total <= 0:
        return 0
    return int(math.floor(count / total * 100 + 0.5))


def top_n(values: Iterable[str], limit: int) -> Dict[str, int]:
    """
    Case-insensitive frequency table of the ``limit`` most common values.

    Values are trimmed and lowercased; blanks are skipped. Ties keep the
    order in which the values were first seen.
    """
    counts: Counter[str] = Counter()
    for value in values:
        key = value.strip().lower() if isinstance(value, str) else ""
        if key:
            counts[key] += 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return dict(ranked[: max(0, limit)])


def count_by(values: Iterable[str | None], missing: str = "unknown") -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for value in values:
        key = value or missing
        counts[key] = counts.get(key, 0) + 1
    return counts


def coverage_counts(candidates: Sequence[CanonicalCandidate]) -> Dict[str, int]:
    return {name: sum(1 for c in candidates if check(c)) for name, check in COVERAGE_CHECKS.items()}


def preview_stats(candidates: Sequence[CanonicalCandidate]) -> Dict[str, int]:
    """Small summary stored with each crawl checkpoint."""

    return {
        "total": len(candidates),
        "with_email": sum(1 for c in candidates if c.email),
        "with_skills": sum(1 for c in candidates if c.skills),
        "active": sum(1 for c in candidates if c.is_active),
    }


def _recent(candidates: Sequence[CanonicalCandidate], limit: int) -> List[Dict[str, Any]]:
    ordered = sorted(
        candidates,
        key=lambda c: (c.created_at is not None, c.created_at or ""),
        reverse=True,
    )
    return [
        {
            "id": c.external_id,
            "name": c.name,
            "email": c.email,
            "created_at": c.created_at,
            "state": c.upstream_state,
            "skills_count": len(c.skills),
        }
        for c in ordered[: max(0, limit)]
    ]


@dataclass
class CandidateStatistics:
    total: int
    data_quality: Dict[str, int]
    percentages: Dict[str, int]
    top_skills: Dict[str, int]
    top_locations: Dict[str, int]
    candidate_states: Dict[str, int]
    experience_levels: Dict[str, int]
    recent_candidates: List[Dict[str, Any]]
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def top_insights(self) -> Dict[str, Any]:
        quality_inputs = (
            self.percentages["email_coverage"],
            self.percentages["phone_coverage"],
            self.percentages["skills_coverage"],
        )
        return {
            "most_common_skill": next(iter(self.top_skills), None),
            "top_location": next(iter(self.top_locations), None),
            "active_percentage": self.percentages["active_candidates"],
            "data_quality_score": int(math.floor(sum(quality_inputs) / len(quality_inputs) + 0.5)),
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "overview": {
                "total_candidates": self.total,
                "generated_at": self.generated_at.isoformat(),
            },
            "data_quality": dict(self.data_quality),
            "percentages": dict(self.percentages),
            "top_skills": dict(self.top_skills),
            "top_locations": dict(self.top_locations),
            "candidate_states": dict(self.candidate_states),
            "experience_levels": dict(self.experience_levels),
            "recent_candidates": list(self.recent_candidates),
            "top_insights": self.top_insights,
        }


def aggregate_candidates(
    candidates: Sequence[CanonicalCandidate],
    *,
    top_skills: int = DEFAULT_TOP_SKILLS,
    top_locations: int = DEFAULT_TOP_LOCATIONS,
    recent_limit: int = DEFAULT_RECENT_LIMIT,
) -> CandidateStatistics:
    """Compute coverage, breakdowns and top-N tables for ``candidates``."""

    total = len(candidates)
    data_quality = coverage_counts(candidates)
    percentages = {key: percentage(data_quality[source], total) for key, source in PERCENTAGE_KEYS.items()}
    return CandidateStatistics(
        total=total,
        data_quality=data_quality,
        percentages=percentages,
        top_skills=top_n((skill for c in candidates for skill in c.skills), top_skills),
        top_locations=top_n((c.location for c in candidates if c.location), top_locations),
        candidate_states=count_by(c.upstream_state for c in candidates),
        experience_levels=count_by(c.experience_level for c in candidates),
        recent_candidates=_recent(candidates, recent_limit),
    )
