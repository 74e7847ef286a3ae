"""
Normalize raw Workable candidate payloads into ``CanonicalCandidate`` records.

Workable has shipped several payload shapes over the years (flat strings,
nested ``address`` objects, ``social_profiles`` arrays, coarse experience
enums). Each canonical field is described by an ordered tuple of extraction
strategies; the first strategy producing a usable value wins. Every
extractor is total: missing or malformed input yields ``None`` or an empty
tuple, never an exception, so one odd record cannot abort a large batch.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Tuple, Union

from recruitops.models.candidate import InterviewStage

from .scoring import score
from .settings import SOURCE_PLATFORM

LOCATION_MAX_LENGTH = 255
# Largest value a 32-bit integer column accepts.
INTEGER_COLUMN_MAX = 2**31 - 1

EXPERIENCE_LEVEL_YEARS: Mapping[str, int] = {
    "entry": 1,
    "junior": 3,
    "senior": 7,
    "executive": 15,
}

STAGE_BY_UPSTREAM_STATE: Mapping[str, InterviewStage] = {
    "sourced": InterviewStage.SOURCED,
    "applied": InterviewStage.APPLIED,
    "phone_screen": InterviewStage.PHONE_SCREEN,
    "interview": InterviewStage.INTERVIEW,
    "offer": InterviewStage.OFFER,
    "hired": InterviewStage.HIRED,
    "rejected": InterviewStage.REJECTED,
    "withdrawn": InterviewStage.WITHDRAWN,
    "active": InterviewStage.APPLIED,
    "archived": InterviewStage.WITHDRAWN,
}


# Extraction strategies ---------------------------------------------------------


def _walk(record: Any, path: Sequence[Union[str, int]]) -> Any:
    current = record
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, (list, tuple)) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


@dataclass(frozen=True)
class DirectField:
    """Read a top-level key."""

    key: str

    def extract(self, record: Mapping[str, Any]) -> Any:
        return record.get(self.key)


@dataclass(frozen=True)
class NestedPath:
    """Follow mapping keys and list indexes, e.g. ``("applications", 0, "job", "title")``."""

    path: Tuple[Union[str, int], ...]

    def extract(self, record: Mapping[str, Any]) -> Any:
        return _walk(record, self.path)


@dataclass(frozen=True)
class ArraySearch:
    """Return ``value_key`` from the first mapping in ``array_key`` accepted by ``predicate``."""

    array_key: str
    predicate: Callable[[Mapping[str, Any]], bool]
    value_key: str

    def extract(self, record: Mapping[str, Any]) -> Any:
        entries = record.get(self.array_key)
        if not isinstance(entries, (list, tuple)):
            return None
        for entry in entries:
            if isinstance(entry, Mapping) and self.predicate(entry):
                return entry.get(self.value_key)
        return None


@dataclass(frozen=True)
class EnumFallback:
    """Translate a coarse enum value (case-insensitive) through ``mapping``."""

    key: str
    mapping: Mapping[str, Any]

    def extract(self, record: Mapping[str, Any]) -> Any:
        value = record.get(self.key)
        if not isinstance(value, str):
            return None
        return self.mapping.get(value.strip().lower())


@dataclass(frozen=True)
class JoinedFields:
    """Join whichever of several text paths are present."""

    paths: Tuple[Tuple[Union[str, int], ...], ...]
    separator: str = ", "

    def extract(self, record: Mapping[str, Any]) -> Any:
        parts = [_text(_walk(record, path)) for path in self.paths]
        present = [part for part in parts if part]
        return self.separator.join(present) if present else None


@dataclass(frozen=True)
class ArraySum:
    """Sum a numeric sub-field across an array; ``None`` when nothing is numeric."""

    array_key: str
    value_key: str

    def extract(self, record: Mapping[str, Any]) -> Any:
        entries = record.get(self.array_key)
        if not isinstance(entries, (list, tuple)):
            return None
        numbers = [_number(entry.get(self.value_key)) for entry in entries if isinstance(entry, Mapping)]
        numbers = [number for number in numbers if number is not None]
        return sum(numbers) if numbers else None


Strategy = Union[DirectField, NestedPath, ArraySearch, EnumFallback, JoinedFields, ArraySum]


def first_match(
    record: Mapping[str, Any],
    strategies: Iterable[Strategy],
    coerce: Callable[[Any], Any] = lambda value: value,
) -> Any:
    """Return the first non-``None`` coerced value produced by ``strategies``."""

    for strategy in strategies:
        value = coerce(strategy.extract(record))
        if value is not None:
            return value
    return None


# Coercion helpers --------------------------------------------------------------


def _text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    # JSON NaN, Infinity and 1e400 all decode to non-finite floats.
    if isinstance(number, float) and not math.isfinite(number):
        return None
    return number


def _whole_number(value: Any) -> Optional[int]:
    number = _number(value)
    if number is None or number < 0:
        return None
    try:
        whole = int(round(number))
    except (ValueError, OverflowError):
        return None
    return whole if whole <= INTEGER_COLUMN_MAX else None


def _skill_name(item: Any) -> Optional[str]:
    if isinstance(item, Mapping):
        return _text(item.get("name"))
    return _text(item)


def _string_tuple(value: Any) -> Optional[Tuple[str, ...]]:
    if isinstance(value, (list, tuple)):
        names = tuple(name for name in (_skill_name(item) for item in value) if name)
        return names or None
    name = _skill_name(value)
    return (name,) if name else None


def _linkedin_profile(entry: Mapping[str, Any]) -> bool:
    kind = entry.get("type")
    return isinstance(kind, str) and kind.strip().lower() == "linkedin"


def _linkedin_url(entry: Mapping[str, Any]) -> bool:
    url = entry.get("url")
    return isinstance(url, str) and "linkedin.com" in url.lower()


# Canonical record --------------------------------------------------------------


@dataclass(frozen=True)
class EducationEntry:
    degree: Optional[str] = None
    field: Optional[str] = None
    school: Optional[str] = None

    def as_dict(self) -> dict:
        return {"degree": self.degree, "field": self.field, "school": self.school}


def _education_entry(value: Any) -> Optional[EducationEntry]:
    if isinstance(value, Mapping):
        entry = EducationEntry(
            degree=_text(value.get("degree")),
            field=_text(value.get("field_of_study")) or _text(value.get("field")),
            school=_text(value.get("school")) or _text(value.get("name")),
        )
        return entry if (entry.degree or entry.field or entry.school) else None
    text = _text(value)
    return EducationEntry(degree=text) if text else None


def _education_tuple(value: Any) -> Optional[Tuple[EducationEntry, ...]]:
    items = value if isinstance(value, (list, tuple)) else [value]
    entries = tuple(entry for entry in (_education_entry(item) for item in items) if entry)
    return entries or None


@dataclass(frozen=True)
class CanonicalCandidate:
    """Strongly typed view of one upstream candidate."""

    external_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    current_position: Optional[str] = None
    company: Optional[str] = None
    skills: Tuple[str, ...] = ()
    experience_years: Optional[int] = None
    experience_level: Optional[str] = None
    education: Tuple[EducationEntry, ...] = ()
    linkedin_profile_url: Optional[str] = None
    profile_picture_url: Optional[str] = None
    resume_url: Optional[str] = None
    social_profile_urls: Tuple[str, ...] = ()
    upstream_state: Optional[str] = None
    interview_stage: InterviewStage = InterviewStage.PENDING
    application_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    source_platform: str = SOURCE_PLATFORM
    completeness_score: int = 0
    last_synced_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def is_active(self) -> bool:
        return self.upstream_state == "active"


# Field extractors --------------------------------------------------------------

LOCATION_STRATEGIES: Tuple[Strategy, ...] = (
    JoinedFields(paths=(("address", "city"), ("address", "country"))),
    NestedPath(path=("location", "location_str")),
    JoinedFields(paths=(("location", "city"), ("location", "country"))),
    DirectField("location"),
    DirectField("address"),
)
SKILL_STRATEGIES: Tuple[Strategy, ...] = (DirectField("skills"), DirectField("tags"))
EXPERIENCE_STRATEGIES: Tuple[Strategy, ...] = (
    DirectField("experience_years"),
    ArraySum(array_key="work_experience", value_key="years"),
    EnumFallback(key="experience", mapping=EXPERIENCE_LEVEL_YEARS),
    EnumFallback(key="experience_level", mapping=EXPERIENCE_LEVEL_YEARS),
)
LINKEDIN_STRATEGIES: Tuple[Strategy, ...] = (
    DirectField("linkedin_url"),
    DirectField("linkedin_profile_url"),
    ArraySearch(array_key="social_profiles", predicate=_linkedin_profile, value_key="url"),
    ArraySearch(array_key="social_profiles", predicate=_linkedin_url, value_key="url"),
)
EDUCATION_STRATEGIES: Tuple[Strategy, ...] = (
    DirectField("education"),
    DirectField("education_entries"),
    DirectField("schools"),
)
NAME_STRATEGIES: Tuple[Strategy, ...] = (
    DirectField("name"),
    JoinedFields(paths=(("firstname",), ("lastname",)), separator=" "),
    JoinedFields(paths=(("first_name",), ("last_name",)), separator=" "),
)
POSITION_STRATEGIES: Tuple[Strategy, ...] = (
    DirectField("current_position"),
    DirectField("headline"),
    NestedPath(path=("applications", 0, "job", "title")),
    NestedPath(path=("job", "title")),
)
COMPANY_STRATEGIES: Tuple[Strategy, ...] = (
    DirectField("company"),
    NestedPath(path=("work_experience", 0, "company")),
    NestedPath(path=("experience_entries", 0, "company")),
)
PICTURE_STRATEGIES: Tuple[Strategy, ...] = (DirectField("profile_picture_url"), DirectField("image_url"))
RESUME_STRATEGIES: Tuple[Strategy, ...] = (DirectField("resume_url"), NestedPath(path=("resume", "url")))
STATE_STRATEGIES: Tuple[Strategy, ...] = (DirectField("state"), DirectField("stage"))


def extract_location(record: Mapping[str, Any]) -> Optional[str]:
    location = first_match(record, LOCATION_STRATEGIES, _text)
    return location[:LOCATION_MAX_LENGTH] if location else None


def extract_skills(record: Mapping[str, Any]) -> Tuple[str, ...]:
    return first_match(record, SKILL_STRATEGIES, _string_tuple) or ()


def extract_experience_years(record: Mapping[str, Any]) -> Optional[int]:
    return first_match(record, EXPERIENCE_STRATEGIES, _whole_number)


def extract_experience_level(record: Mapping[str, Any]) -> Optional[str]:
    level = first_match(record, (DirectField("experience"), DirectField("experience_level")), _text)
    return level.lower() if level else None


def extract_linkedin_url(record: Mapping[str, Any]) -> Optional[str]:
    return first_match(record, LINKEDIN_STRATEGIES, _text)


def extract_education(record: Mapping[str, Any]) -> Tuple[EducationEntry, ...]:
    return first_match(record, EDUCATION_STRATEGIES, _education_tuple) or ()


def extract_social_profile_urls(record: Mapping[str, Any]) -> Tuple[str, ...]:
    profiles = record.get("social_profiles")
    if not isinstance(profiles, (list, tuple)):
        return ()
    urls = (_text(entry.get("url")) for entry in profiles if isinstance(entry, Mapping))
    return tuple(url for url in urls if url)


def extract_upstream_state(record: Mapping[str, Any]) -> Optional[str]:
    state = first_match(record, STATE_STRATEGIES, _text)
    return state.lower().replace(" ", "_") if state else None


def map_interview_stage(state: Optional[str]) -> InterviewStage:
    """Map an upstream lifecycle state onto the recruiter-facing stage."""

    if not state:
        return InterviewStage.PENDING
    return STAGE_BY_UPSTREAM_STATE.get(state.strip().lower().replace(" ", "_"), InterviewStage.PENDING)


def _application_count(record: Mapping[str, Any]) -> int:
    applications = record.get("applications")
    return len(applications) if isinstance(applications, (list, tuple)) else 0


def normalize_candidate(raw: Any, *, synced_at: Optional[datetime] = None) -> CanonicalCandidate:
    """
    Build a ``CanonicalCandidate`` from one raw upstream record.

    Non-mapping input is treated as an empty record. The completeness score is
    recomputed from the canonical fields on every call.
    """

    record: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    state = extract_upstream_state(record)
    candidate = CanonicalCandidate(
        external_id=_text(record.get("id")) or "",
        name=first_match(record, NAME_STRATEGIES, _text) or "Unknown",
        email=_text(record.get("email")),
        phone=_text(record.get("phone")),
        location=extract_location(record),
        current_position=first_match(record, POSITION_STRATEGIES, _text),
        company=first_match(record, COMPANY_STRATEGIES, _text),
        skills=extract_skills(record),
        experience_years=extract_experience_years(record),
        experience_level=extract_experience_level(record),
        education=extract_education(record),
        linkedin_profile_url=extract_linkedin_url(record),
        profile_picture_url=first_match(record, PICTURE_STRATEGIES, _text),
        resume_url=first_match(record, RESUME_STRATEGIES, _text),
        social_profile_urls=extract_social_profile_urls(record),
        upstream_state=state,
        interview_stage=map_interview_stage(state),
        application_count=_application_count(record),
        created_at=_text(record.get("created_at")),
        updated_at=_text(record.get("updated_at")),
        last_synced_at=synced_at or datetime.now(timezone.utc),
    )
    return replace(candidate, completeness_score=score(candidate))
