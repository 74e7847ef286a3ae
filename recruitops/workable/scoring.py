"""Profile completeness scoring."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from .normalize import CanonicalCandidate

MAX_SCORE = 100

# (label, points, presence check). Weights sum to 110; totals are capped at MAX_SCORE.
SCORE_WEIGHTS: Tuple[Tuple[str, int, Callable[["CanonicalCandidate"], bool]], ...] = (
    ("email", 15, lambda c: bool(c.email)),
    ("phone", 10, lambda c: bool(c.phone)),
    ("resume", 15, lambda c: bool(c.resume_url)),
    ("linkedin", 15, lambda c: bool(c.linkedin_profile_url)),
    ("skills", 10, lambda c: len(c.skills) > 0),
    ("experience", 10, lambda c: c.experience_years is not None or bool(c.experience_level)),
    ("company", 10, lambda c: bool(c.company)),
    ("location", 10, lambda c: bool(c.location)),
    ("education", 5, lambda c: len(c.education) > 0),
    ("profile_picture", 5, lambda c: bool(c.profile_picture_url)),
    ("social_profiles", 5, lambda c: len(c.social_profile_urls) > 0),
)


def score(candidate: "CanonicalCandidate") -> int:
    """Return the additive completeness score for ``candidate``, capped at 100."""

    total = sum(points for _, points, present in SCORE_WEIGHTS if present(candidate))
    return min(MAX_SCORE, total)


def score_breakdown(candidate: "CanonicalCandidate") -> dict[str, int]:
    """Points contributed by each recognized field; absent fields map to 0."""

    return {label: (points if present(candidate) else 0) for label, points, present in SCORE_WEIGHTS}
