"""
Pagination crawler for the Workable candidate collection.

The crawl is a small state machine (``FETCHING`` -> ``CHECKPOINTING`` ->
``DONE``) that walks ``offset``/``limit`` pages until the upstream reports no
further page, returns an empty page, the page ceiling is reached, or too many
consecutive page fetches fail. Progress snapshots go to an injected sink so
the loop can be tested without a database. Optionally the first few candidates are
enriched with their detail record before normalization.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from .client import CandidatePage, WorkableClient
from .errors import TransportError
from .metrics import record_page_fetch
from .normalize import CanonicalCandidate, normalize_candidate
from .stats import preview_stats


class CrawlState(str, enum.Enum):
    FETCHING = "fetching"
    CHECKPOINTING = "checkpointing"
    DONE = "done"


class StopReason(str, enum.Enum):
    EMPTY_PAGE = "empty_page"
    NO_NEXT_PAGE = "no_next_page"
    PAGE_LIMIT = "page_limit"
    TOO_MANY_ERRORS = "too_many_errors"


@dataclass(frozen=True)
class PageError:
    page: int
    offset: int
    message: str
    status_code: int | None = None

    def describe(self) -> str:
        return f"Page {self.page} (offset {self.offset}): {self.message}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "offset": self.offset,
            "message": self.message,
            "status_code": self.status_code,
        }


@dataclass(frozen=True)
class ProgressSnapshot:
    current_page: int
    total_candidates: int
    pages_fetched: int
    preview_stats: Dict[str, int]
    timestamp: datetime

    @property
    def progress(self) -> str:
        return f"Loaded {self.total_candidates} candidates from {self.pages_fetched} pages"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalCandidates": self.total_candidates,
            "pagesFetched": self.pages_fetched,
            "progress": self.progress,
            "preview_stats": dict(self.preview_stats),
            "timestamp": self.timestamp.isoformat(),
        }


ProgressSink = Callable[[ProgressSnapshot], None]


@dataclass
class CrawlResult:
    candidates: List[CanonicalCandidate] = field(default_factory=list)
    errors: List[PageError] = field(default_factory=list)
    pages_fetched: int = 0
    fetch_calls: int = 0
    checkpoints: int = 0
    enriched: int = 0
    enrichment_failures: int = 0
    stop_reason: StopReason | None = None

    @property
    def aborted(self) -> bool:
        return self.stop_reason is StopReason.TOO_MANY_ERRORS


class PaginationCrawler:
    """Accumulate every candidate page from a ``WorkableClient``."""

    def __init__(
        self,
        client: WorkableClient,
        *,
        page_size: int = 100,
        max_pages: int = 200,
        page_delay: float = 0.2,
        checkpoint_every: int = 5,
        max_consecutive_errors: int = 10,
        enrich_limit: int = 0,
        enrich_delay: float = 0.15,
        on_progress: Optional[ProgressSink] = None,
        sleep_fn=time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.page_size = max(1, int(page_size))
        self.max_pages = max(1, int(max_pages))
        self.page_delay = page_delay
        self.checkpoint_every = max(1, int(checkpoint_every))
        self.max_consecutive_errors = max(0, int(max_consecutive_errors))
        self.enrich_limit = max(0, int(enrich_limit))
        self.enrich_delay = enrich_delay
        self.on_progress = on_progress
        self.sleep = sleep_fn
        self.logger = logger or logging.getLogger(__name__)

    def crawl(self, *, synced_at: datetime | None = None) -> CrawlResult:
        synced_at = synced_at or datetime.now(timezone.utc)
        result = CrawlResult()
        state = CrawlState.FETCHING
        offset = 0
        page = 1
        consecutive_errors = 0

        while state is not CrawlState.DONE:
            if state is CrawlState.CHECKPOINTING:
                self._checkpoint(result, page)
                state = CrawlState.DONE if result.stop_reason else CrawlState.FETCHING
                continue

            if result.fetch_calls:
                self.sleep(self.page_delay)
            result.fetch_calls += 1
            started = time.perf_counter()
            try:
                fetched = self.client.fetch_candidates_page(limit=self.page_size, offset=offset)
            except (TransportError, requests.RequestException) as exc:
                record_page_fetch(outcome="failure", duration_seconds=time.perf_counter() - started)
                consecutive_errors += 1
                error = PageError(
                    page=page,
                    offset=offset,
                    message=str(exc),
                    status_code=getattr(exc, "status_code", None),
                )
                result.errors.append(error)
                self.logger.warning(
                    "Workable page fetch failed: %s",
                    error.describe(),
                    extra={
                        "workable_page": page,
                        "workable_offset": offset,
                        "workable_consecutive_errors": consecutive_errors,
                    },
                )
                if consecutive_errors > self.max_consecutive_errors:
                    result.stop_reason = StopReason.TOO_MANY_ERRORS
                    self.logger.error(
                        "Stopping Workable crawl after %s consecutive page errors",
                        consecutive_errors,
                        extra={"workable_page": page, "workable_candidates": len(result.candidates)},
                    )
                    state = CrawlState.DONE
                continue

            record_page_fetch(outcome="success", duration_seconds=time.perf_counter() - started)
            consecutive_errors = 0
            if not fetched.records:
                result.stop_reason = StopReason.EMPTY_PAGE
                state = CrawlState.DONE
                continue

            records = self._enrich(fetched.records, result)
            result.candidates.extend(normalize_candidate(raw, synced_at=synced_at) for raw in records)
            result.pages_fetched += 1
            self.logger.info(
                "Fetched Workable page %s (%s candidates, %s total)",
                page,
                len(fetched.records),
                len(result.candidates),
                extra={
                    "workable_page": page,
                    "workable_offset": offset,
                    "workable_page_records": len(fetched.records),
                    "workable_candidates": len(result.candidates),
                },
            )
            offset += self.page_size
            page += 1

            if not self._has_next_page(fetched):
                result.stop_reason = StopReason.NO_NEXT_PAGE
            elif result.pages_fetched >= self.max_pages:
                result.stop_reason = StopReason.PAGE_LIMIT
                self.logger.warning(
                    "Workable crawl reached the %s page ceiling",
                    self.max_pages,
                    extra={"workable_candidates": len(result.candidates)},
                )

            if result.pages_fetched % self.checkpoint_every == 0:
                state = CrawlState.CHECKPOINTING
            elif result.stop_reason:
                state = CrawlState.DONE

        self.logger.info(
            "Workable crawl finished: %s candidates, %s pages, %s page errors (%s)",
            len(result.candidates),
            result.pages_fetched,
            len(result.errors),
            result.stop_reason.value if result.stop_reason else "unknown",
            extra={
                "workable_candidates": len(result.candidates),
                "workable_pages": result.pages_fetched,
                "workable_page_errors": len(result.errors),
                "workable_fetch_calls": result.fetch_calls,
            },
        )
        return result

    def _has_next_page(self, fetched: CandidatePage) -> bool:
        # An explicit next pointer wins; a paging block without one means last page.
        if fetched.has_next_pointer:
            return True
        if fetched.has_paging:
            return False
        return len(fetched.records) >= self.page_size

    def _checkpoint(self, result: CrawlResult, next_page: int) -> None:
        snapshot = ProgressSnapshot(
            current_page=next_page - 1,
            total_candidates=len(result.candidates),
            pages_fetched=result.pages_fetched,
            preview_stats=preview_stats(result.candidates),
            timestamp=datetime.now(timezone.utc),
        )
        result.checkpoints += 1
        self.logger.info(
            "Workable crawl checkpoint: %s",
            snapshot.progress,
            extra={"workable_page": snapshot.current_page, "workable_candidates": snapshot.total_candidates},
        )
        if self.on_progress is None:
            return
        try:
            self.on_progress(snapshot)
        except Exception:  # noqa: BLE001
            self.logger.warning("Progress checkpoint failed; continuing crawl.", exc_info=True)

    def _enrich(self, records: List[Any], result: CrawlResult) -> List[Any]:
        """Merge detail records into the first ``enrich_limit`` candidates of the crawl."""

        attempted = result.enriched + result.enrichment_failures
        if attempted >= self.enrich_limit:
            return records
        merged = []
        for raw in records:
            if attempted < self.enrich_limit and isinstance(raw, Mapping) and raw.get("id") not in (None, ""):
                if attempted:
                    self.sleep(self.enrich_delay)
                attempted += 1
                raw = self._enrich_one(raw, result)
            merged.append(raw)
        return merged

    def _enrich_one(self, raw: Mapping[str, Any], result: CrawlResult) -> Mapping[str, Any]:
        candidate_id = str(raw["id"])
        try:
            detail = self.client.fetch_candidate(candidate_id)
        except (TransportError, requests.RequestException) as exc:
            # The list record is still usable on its own.
            result.enrichment_failures += 1
            self.logger.warning(
                "Could not load Workable details for candidate %s: %s",
                candidate_id,
                exc,
                extra={"workable_candidate_id": candidate_id},
            )
            return raw
        result.enriched += 1
        enriched = dict(raw)
        enriched.update({key: value for key, value in detail.items() if value not in (None, "", [], {})})
        return enriched
