"""
Explicit sync settings resolved once from the Flask config.

The orchestrator receives a ``SyncConfig`` instead of reading the process
environment so tests can drive it with fake credentials.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Mapping

from .errors import ConfigurationError

SOURCE_PLATFORM = "workable"
INTEGRATION_TYPE = "workable"
SYNC_TYPE_LOAD_ALL = "load_all_candidates"
DEFAULT_INCLUDE = "applications,resume,social_profiles"
DEFAULT_ENRICH_LIMIT = 50

_SCHEME_RE = re.compile(r"^[a-z]+://", re.IGNORECASE)


def clean_subdomain(value: str | None) -> str:
    """
    Reduce a configured account identifier to the bare subdomain.

    Accepts ``acme``, ``acme.workable.com`` or ``https://acme.workable.com/``.
    """
    if not value:
        return ""
    cleaned = _SCHEME_RE.sub("", str(value).strip()).strip("/")
    cleaned = cleaned.split("/", 1)[0]
    if cleaned.lower().endswith(".workable.com"):
        cleaned = cleaned[: -len(".workable.com")]
    return cleaned.strip().lower()


def _get_int(mapping: Mapping[str, Any], key: str, default: int, minimum: int = 0) -> int:
    value = mapping.get(key)
    try:
        number = int(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        number = default
    return max(minimum, number)


def _get_float(mapping: Mapping[str, Any], key: str, default: float) -> float:
    value = mapping.get(key)
    try:
        number = float(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        number = default
    return max(0.0, number)


@dataclass(frozen=True)
class SyncConfig:
    api_token: str | None
    subdomain: str | None
    database_url: str | None = None
    include: str | None = DEFAULT_INCLUDE
    user_agent: str = "recruitops-workable-sync/1.0"
    page_size: int = 100
    max_pages: int = 200
    page_delay_seconds: float = 0.2
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    request_timeout_seconds: float = 30.0
    checkpoint_every: int = 5
    enrich_limit: int = 0
    enrich_delay_seconds: float = 0.15
    max_consecutive_page_errors: int = 10
    write_batch_size: int = 25
    write_delay_seconds: float = 0.1
    error_threshold: int = 10
    lock_stale_minutes: int = 30
    top_skills: int = 20
    top_locations: int = 15
    source_platform: str = SOURCE_PLATFORM
    integration_type: str = INTEGRATION_TYPE

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SyncConfig":
        """Build settings from a Flask config (or any mapping using the same keys)."""
        return cls(
            api_token=mapping.get("WORKABLE_API_TOKEN"),
            subdomain=mapping.get("WORKABLE_SUBDOMAIN"),
            database_url=mapping.get("SQLALCHEMY_DATABASE_URI") or mapping.get("DATABASE_URL"),
            include=mapping.get("WORKABLE_INCLUDE", DEFAULT_INCLUDE) or None,
            user_agent=mapping.get("WORKABLE_USER_AGENT") or "recruitops-workable-sync/1.0",
            page_size=_get_int(mapping, "WORKABLE_PAGE_SIZE", 100, minimum=1),
            max_pages=_get_int(mapping, "WORKABLE_MAX_PAGES", 200, minimum=1),
            page_delay_seconds=_get_float(mapping, "WORKABLE_PAGE_DELAY_SECONDS", 0.2),
            max_retries=_get_int(mapping, "WORKABLE_MAX_RETRIES", 3, minimum=1),
            retry_backoff_seconds=_get_float(mapping, "WORKABLE_RETRY_BACKOFF_SECONDS", 1.0),
            request_timeout_seconds=_get_float(mapping, "WORKABLE_REQUEST_TIMEOUT_SECONDS", 30.0),
            checkpoint_every=_get_int(mapping, "WORKABLE_CHECKPOINT_EVERY", 5, minimum=1),
            enrich_limit=_get_int(mapping, "WORKABLE_ENRICH_LIMIT", 0),
            enrich_delay_seconds=_get_float(mapping, "WORKABLE_ENRICH_DELAY_SECONDS", 0.15),
            max_consecutive_page_errors=_get_int(mapping, "WORKABLE_MAX_CONSECUTIVE_PAGE_ERRORS", 10),
            write_batch_size=_get_int(mapping, "SYNC_WRITE_BATCH_SIZE", 25, minimum=1),
            write_delay_seconds=_get_float(mapping, "SYNC_WRITE_DELAY_SECONDS", 0.1),
            error_threshold=_get_int(mapping, "SYNC_ERROR_THRESHOLD", 10),
            lock_stale_minutes=_get_int(mapping, "SYNC_LOCK_STALE_MINUTES", 30, minimum=1),
            top_skills=_get_int(mapping, "SYNC_STATS_TOP_SKILLS", 20, minimum=1),
            top_locations=_get_int(mapping, "SYNC_STATS_TOP_LOCATIONS", 15, minimum=1),
        )

    def with_overrides(self, **changes: Any) -> "SyncConfig":
        return replace(self, **changes)

    @property
    def clean_subdomain(self) -> str:
        return clean_subdomain(self.subdomain)

    @property
    def base_url(self) -> str:
        return f"https://{self.clean_subdomain}.workable.com/spi/v3"

    def missing_settings(self) -> list[str]:
        missing = []
        if not (self.api_token or "").strip():
            missing.append("WORKABLE_API_TOKEN")
        if not self.clean_subdomain:
            missing.append("WORKABLE_SUBDOMAIN")
        if not self.database_url:
            missing.append("DATABASE_URL")
        return missing

    def validate(self) -> "SyncConfig":
        """Raise ``ConfigurationError`` when required credentials are absent."""
        missing = self.missing_settings()
        if missing:
            raise ConfigurationError(
                f"Workable sync is not configured; missing {', '.join(missing)}.",
                missing=missing,
            )
        return self
