"""Prometheus metrics helpers for the Workable sync."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Gauge, Histogram

_page_fetch_counter = Counter(
    "workable_page_fetches_total",
    "Workable candidate page fetches by outcome.",
    ["outcome"],
)
_page_fetch_duration = Histogram(
    "workable_page_fetch_duration_seconds",
    "Duration of a Workable candidate page fetch, retries included.",
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)
_retry_counter = Counter(
    "workable_fetch_retries_total",
    "Retries issued by the Workable fetch client by reason.",
    ["reason"],
)
_write_batch_counter = Counter(
    "sync_write_batches_total",
    "Reconciliation write batches by status.",
    ["status"],
)
_run_counter = Counter(
    "sync_runs_total",
    "Completed sync runs by terminal status.",
    ["status"],
)
_run_duration = Histogram(
    "sync_run_duration_seconds",
    "Wall-clock duration of sync runs in seconds.",
    buckets=(5, 15, 30, 60, 120, 300, 600, 1200, 1800),
)
_last_run_candidates = Gauge(
    "sync_last_run_candidates",
    "Candidates fetched and written by the most recent sync run.",
    ["kind"],
)


def record_page_fetch(*, outcome: Literal["success", "failure"], duration_seconds: float) -> None:
    """Capture one page fetch attempt from the crawler."""

    _page_fetch_counter.labels(outcome=outcome).inc()
    _page_fetch_duration.observe(duration_seconds)


def record_fetch_retry(reason: Literal["throttled", "http_error", "network"]) -> None:
    """Increment the fetch retry counter."""

    _retry_counter.labels(reason=reason).inc()


def record_write_batch(status: Literal["success", "failure"]) -> None:
    _write_batch_counter.labels(status=status).inc()


def record_sync_run(
    *,
    status: str,
    duration_seconds: float,
    total_candidates: int,
    synced_candidates: int,
) -> None:
    """Capture metrics for a finished sync run."""

    _run_counter.labels(status=status).inc()
    _run_duration.observe(duration_seconds)
    _last_run_candidates.labels(kind="fetched").set(total_candidates)
    _last_run_candidates.labels(kind="synced").set(synced_candidates)
