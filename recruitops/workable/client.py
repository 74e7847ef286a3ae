"""
Rate-limited HTTP client for the Workable SPI v3 API.

``fetch_with_retry`` wraps a single GET with bounded retries: throttled
responses (429) and other failures back off linearly, one second per
attempt by default. ``WorkableClient`` builds authenticated candidate page
requests on top of it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Mapping

import requests

from .errors import ThrottleError, TransportError
from .metrics import record_fetch_retry
from .settings import SyncConfig, clean_subdomain

logger = logging.getLogger(__name__)

_ERROR_BODY_LIMIT = 500


def fetch_with_retry(
    session: requests.Session,
    url: str,
    headers: Mapping[str, str],
    max_retries: int = 3,
    *,
    params: Mapping[str, Any] | None = None,
    sleep_fn=time.sleep,
    backoff_seconds: float = 1.0,
    timeout: float = 30.0,
) -> requests.Response:
    """
    GET ``url`` and return the first 2xx response.

    Raises ``ThrottleError`` when every attempt was throttled,
    ``TransportError`` when the last attempt returned another non-2xx status,
    and re-raises the ``requests`` exception when the last attempt failed at
    the network level.
    """
    attempts = max(1, int(max_retries))
    for attempt in range(attempts):
        is_last = attempt == attempts - 1
        wait = (attempt + 1) * backoff_seconds
        try:
            response = session.get(url, headers=dict(headers), params=params, timeout=timeout)
        except requests.RequestException as exc:
            if is_last:
                raise
            logger.warning(
                "Workable request failed (%s); retry %s/%s in %.1fs",
                exc,
                attempt + 1,
                attempts,
                wait,
                extra={"workable_url": url, "workable_attempt": attempt + 1},
            )
            record_fetch_retry("network")
            sleep_fn(wait)
            continue

        if response.ok:
            return response

        body = (response.text or "")[:_ERROR_BODY_LIMIT]
        if response.status_code == 429:
            if is_last:
                raise ThrottleError(response.status_code, body, url=url)
            logger.info(
                "Workable rate limit hit; waiting %.1fs before retry",
                wait,
                extra={"workable_url": url, "workable_attempt": attempt + 1},
            )
            record_fetch_retry("throttled")
            sleep_fn(wait)
            continue

        if is_last:
            raise TransportError(response.status_code, body, url=url)
        logger.warning(
            "Workable returned HTTP %s; retry %s/%s in %.1fs",
            response.status_code,
            attempt + 1,
            attempts,
            wait,
            extra={
                "workable_url": url,
                "workable_status_code": response.status_code,
                "workable_attempt": attempt + 1,
            },
        )
        record_fetch_retry("http_error")
        sleep_fn(wait)

    # Unreachable: the final attempt always returns or raises.
    raise TransportError(None, "retries exhausted", url=url)


@dataclass(frozen=True)
class CandidatePage:
    """One page of raw candidate records plus the upstream paging hints."""

    records: List[Any] = field(default_factory=list)
    next_url: str | None = None
    has_paging: bool = False

    @property
    def has_next_pointer(self) -> bool:
        return bool(self.next_url)


class WorkableClient:
    """Authenticated access to the Workable candidates endpoint."""

    def __init__(
        self,
        *,
        subdomain: str,
        api_token: str,
        session: requests.Session | None = None,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        timeout: float = 30.0,
        include: str | None = None,
        user_agent: str = "recruitops-workable-sync/1.0",
        sleep_fn=time.sleep,
    ) -> None:
        self.subdomain = clean_subdomain(subdomain)
        self.session = session or requests.Session()
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        self.include = include
        self.sleep = sleep_fn
        self._headers = {
            "Authorization": f"Bearer {api_token}",
            "Accept": "application/json",
            "User-Agent": user_agent,
        }

    @classmethod
    def from_config(cls, config: SyncConfig, *, session: requests.Session | None = None, sleep_fn=time.sleep):
        return cls(
            subdomain=config.subdomain or "",
            api_token=config.api_token or "",
            session=session,
            max_retries=config.max_retries,
            backoff_seconds=config.retry_backoff_seconds,
            timeout=config.request_timeout_seconds,
            include=config.include,
            user_agent=config.user_agent,
            sleep_fn=sleep_fn,
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.subdomain}.workable.com/spi/v3"

    @property
    def candidates_url(self) -> str:
        return f"{self.base_url}/candidates"

    def fetch_candidates_page(self, *, limit: int, offset: int) -> CandidatePage:
        """Fetch ``limit`` candidates starting at ``offset`` across every state."""

        params: dict[str, Any] = {"limit": limit, "offset": offset, "state": "all"}
        if self.include:
            params["include"] = self.include
        response = fetch_with_retry(
            self.session,
            self.candidates_url,
            self._headers,
            self.max_retries,
            params=params,
            sleep_fn=self.sleep,
            backoff_seconds=self.backoff_seconds,
            timeout=self.timeout,
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(response.status_code, f"invalid JSON body: {exc}", url=self.candidates_url) from exc
        if not isinstance(payload, Mapping):
            raise TransportError(response.status_code, "unexpected payload shape", url=self.candidates_url)

        raw_candidates = payload.get("candidates")
        records = list(raw_candidates) if isinstance(raw_candidates, list) else []
        paging = payload.get("paging")
        next_url = paging.get("next") if isinstance(paging, Mapping) else None
        return CandidatePage(records=records, next_url=next_url or None, has_paging=isinstance(paging, Mapping))

    def fetch_candidate(self, candidate_id: str) -> Mapping[str, Any]:
        """Fetch the detail record for one candidate (``GET /candidates/{id}``)."""

        url = f"{self.candidates_url}/{candidate_id}"
        response = fetch_with_retry(
            self.session,
            url,
            self._headers,
            self.max_retries,
            sleep_fn=self.sleep,
            backoff_seconds=self.backoff_seconds,
            timeout=self.timeout,
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(response.status_code, f"invalid JSON body: {exc}", url=url) from exc
        detail = payload.get("candidate") if isinstance(payload, Mapping) else None
        if not isinstance(detail, Mapping):
            raise TransportError(response.status_code, "unexpected payload shape", url=url)
        return detail
