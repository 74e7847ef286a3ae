"""Exception hierarchy for the Workable candidate sync."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Sequence


class SyncError(RuntimeError):
    """Base error for sync failures."""


class ConfigurationError(SyncError):
    """Raised when credentials or settings are missing before a run starts."""

    def __init__(self, message: str, *, missing: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing = tuple(missing)


class TransportError(SyncError):
    """Upstream HTTP failure after retries were exhausted."""

    def __init__(self, status_code: int | None, body: str = "", *, url: str | None = None) -> None:
        self.status_code = status_code
        self.body = body or ""
        self.url = url
        super().__init__(f"HTTP {status_code}: {self.body[:200]}" if self.body else f"HTTP {status_code}")


class ThrottleError(TransportError):
    """HTTP 429 responses kept coming until the retry budget ran out."""


class WriteBatchError(SyncError):
    """
    A reconciliation batch failed to insert.

    Collected rather than raised so later batches still run; ``start`` and
    ``end`` are zero-based positions in the canonical sequence, end exclusive.
    """

    def __init__(self, batch_index: int, start: int, end: int, message: str) -> None:
        self.batch_index = batch_index
        self.start = start
        self.end = end
        self.message = message
        super().__init__(f"Batch {start}-{end}: {message}")

    @property
    def size(self) -> int:
        return self.end - self.start

    def as_dict(self) -> Dict[str, Any]:
        return {
            "batch_index": self.batch_index,
            "start": self.start,
            "end": self.end,
            "message": self.message,
        }


class DeletePhaseError(SyncError):
    """The bulk delete preceding reconciliation failed."""


class SyncAlreadyRunningError(SyncError):
    """Another run for the same integration is still in progress."""

    def __init__(self, integration_type: str, run_id: int, started_at: datetime | None) -> None:
        self.integration_type = integration_type
        self.run_id = run_id
        self.started_at = started_at
        started = started_at.isoformat() if started_at else "unknown"
        super().__init__(
            f"A {integration_type} sync is already running (run {run_id}, started {started})."
        )
