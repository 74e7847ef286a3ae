"""
Full-replace reconciliation of canonical candidates into the ``candidates`` table.

The writer deletes every row tagged with the sync's source platform and
re-inserts the latest crawl in small batches. A failed batch is rolled back,
recorded as a ``WriteBatchError`` and skipped; later batches still run. There
is no transaction spanning the whole replace, so overlapping runs must be
prevented by the caller (see ``SyncRunRecorder.start``).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recruitops.models import Candidate, db

from .errors import DeletePhaseError, WriteBatchError
from .metrics import record_write_batch
from .normalize import CanonicalCandidate
from .settings import SOURCE_PLATFORM

logger = logging.getLogger(__name__)


class CandidateStore:
    """Table-level operations on ``candidates`` used by the writer."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session if self._session is not None else db.session

    def delete_by_source(self, source_platform: str) -> int:
        try:
            result = self.session.execute(delete(Candidate).where(Candidate.source_platform == source_platform))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise DeletePhaseError(f"Failed to delete existing {source_platform} candidates: {exc}") from exc
        return max(0, result.rowcount or 0)

    def insert_batch(self, rows: Sequence[Candidate]) -> int:
        try:
            self.session.add_all(rows)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return len(rows)

    def count_by_source(self, source_platform: str) -> int:
        stmt = select(func.count()).select_from(Candidate).where(Candidate.source_platform == source_platform)
        return int(self.session.execute(stmt).scalar_one())


@dataclass
class ReconcileResult:
    created: int = 0
    deleted: int = 0
    batches_attempted: int = 0
    errors: List[WriteBatchError] = field(default_factory=list)

    @property
    def failed_records(self) -> int:
        return sum(error.size for error in self.errors)


def _first_line(exc: BaseException) -> str:
    lines = str(exc.__cause__ or exc).strip().splitlines()
    return lines[0] if lines else exc.__class__.__name__


def iter_batches(items: Sequence, size: int) -> Iterator[tuple[int, int, Sequence]]:
    """Yield ``(start, end, chunk)`` slices of ``items`` with at most ``size`` entries."""

    size = max(1, int(size))
    for start in range(0, len(items), size):
        end = min(start + size, len(items))
        yield start, end, items[start:end]


class ReconciliationWriter:
    def __init__(
        self,
        store: CandidateStore | None = None,
        *,
        source_platform: str = SOURCE_PLATFORM,
        batch_size: int = 25,
        batch_delay: float = 0.1,
        sync_run_id: int | None = None,
        sleep_fn=time.sleep,
    ) -> None:
        self.store = store or CandidateStore()
        self.source_platform = source_platform
        self.batch_size = max(1, int(batch_size))
        self.batch_delay = batch_delay
        self.sync_run_id = sync_run_id
        self.sleep = sleep_fn

    def reconcile(self, candidates: Sequence[CanonicalCandidate]) -> ReconcileResult:
        """
        Replace the stored rows for this source with ``candidates``.

        Raises ``DeletePhaseError`` when the initial delete fails; nothing is
        inserted in that case. Batch failures are collected on the result.
        """
        result = ReconcileResult()
        result.deleted = self.store.delete_by_source(self.source_platform)
        logger.info(
            "Deleted %s existing %s candidates",
            result.deleted,
            self.source_platform,
            extra={"sync_deleted": result.deleted, "sync_run_id": self.sync_run_id},
        )

        for batch_index, (start, end, chunk) in enumerate(iter_batches(candidates, self.batch_size), start=1):
            if batch_index > 1:
                self.sleep(self.batch_delay)
            result.batches_attempted += 1
            rows = [Candidate.from_canonical(candidate, sync_run_id=self.sync_run_id) for candidate in chunk]
            try:
                result.created += self.store.insert_batch(rows)
            except SQLAlchemyError as exc:
                error = WriteBatchError(batch_index, start, end, _first_line(exc))
                result.errors.append(error)
                record_write_batch("failure")
                logger.warning(
                    "Candidate write batch %s failed: %s",
                    batch_index,
                    error,
                    extra={
                        "sync_batch_index": batch_index,
                        "sync_batch_start": start,
                        "sync_batch_end": end,
                        "sync_run_id": self.sync_run_id,
                    },
                )
                continue
            record_write_batch("success")
            logger.debug(
                "Candidate write batch %s stored rows %s-%s",
                batch_index,
                start,
                end,
                extra={"sync_batch_index": batch_index, "sync_created": result.created},
            )

        logger.info(
            "Reconciliation finished: %s created, %s failed batches",
            result.created,
            len(result.errors),
            extra={
                "sync_created": result.created,
                "sync_failed_batches": len(result.errors),
                "sync_batches": result.batches_attempted,
                "sync_run_id": self.sync_run_id,
            },
        )
        return result
