"""
Sync run lifecycle and history helpers backed by ``integration_sync_logs``.

``SyncRunRecorder`` owns the writes made during a run: the single-flight
check and initial ``in_progress`` row, checkpoint snapshots, and the one
terminal transition. ``SyncRunService`` provides read-only history queries
for the API and CLI.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from recruitops.models import IntegrationSyncLog, SyncStatus, db

from .crawler import ProgressSnapshot
from .errors import SyncAlreadyRunningError, SyncError
from .settings import INTEGRATION_TYPE

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 200


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on round trip.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SyncRunRecorder:
    """Write side of the sync log for one integration."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        integration_type: str = INTEGRATION_TYPE,
        stale_after: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._session = session
        self.integration_type = integration_type
        self.stale_after = stale_after
        self.clock = clock

    @property
    def session(self) -> Session:
        return self._session if self._session is not None else db.session

    def start(self, sync_type: str) -> IntegrationSyncLog:
        """
        Create the ``in_progress`` row for a new run.

        Raises ``SyncAlreadyRunningError`` when another run for this
        integration started within the stale window. Older in-progress rows
        are closed as failed so they stop blocking.

        The insert is guarded by a partial unique index, so a concurrent
        claim that slips past the check fails on commit and is reported the
        same way.
        """
        now = self.clock()
        cutoff = now - self.stale_after
        running = self._in_progress_runs()

        for row in running:
            started_at = _as_utc(row.started_at)
            if started_at is not None and started_at >= cutoff:
                raise SyncAlreadyRunningError(self.integration_type, row.id, started_at)

        for row in running:
            row.status = SyncStatus.FAILED
            row.completed_at = now
            row.error_message = "Run abandoned: no terminal status recorded before the stale window elapsed."
            logger.warning(
                "Closing stale %s sync run %s",
                self.integration_type,
                row.id,
                extra={"sync_run_id": row.id, "sync_integration": self.integration_type},
            )
        if running:
            self.session.flush()

        run = IntegrationSyncLog(
            integration_type=self.integration_type,
            sync_type=sync_type,
            status=SyncStatus.IN_PROGRESS,
            started_at=now,
            synced_data={"phase": "starting"},
        )
        self.session.add(run)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            winner = next(iter(self._in_progress_runs()), None)
            if winner is None:
                raise
            raise SyncAlreadyRunningError(self.integration_type, winner.id, _as_utc(winner.started_at)) from exc
        logger.info(
            "Started %s sync run %s (%s)",
            self.integration_type,
            run.id,
            sync_type,
            extra={"sync_run_id": run.id, "sync_type": sync_type},
        )
        return run

    def _in_progress_runs(self) -> list[IntegrationSyncLog]:
        return list(
            self.session.execute(
                select(IntegrationSyncLog)
                .where(
                    IntegrationSyncLog.integration_type == self.integration_type,
                    IntegrationSyncLog.status == SyncStatus.IN_PROGRESS,
                )
                .order_by(IntegrationSyncLog.started_at.desc())
            ).scalars()
        )

    def checkpoint(self, run: IntegrationSyncLog, snapshot: ProgressSnapshot) -> None:
        if run.status is not SyncStatus.IN_PROGRESS:
            raise SyncError(f"Sync run {run.id} is already {run.status.value}; cannot checkpoint.")
        try:
            run.synced_data = {"phase": "crawling", **snapshot.as_dict()}
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def progress_sink(self, run: IntegrationSyncLog) -> Callable[[ProgressSnapshot], None]:
        """Bind ``checkpoint`` to ``run`` for use as a crawler progress sink."""

        def _sink(snapshot: ProgressSnapshot) -> None:
            self.checkpoint(run, snapshot)

        return _sink

    def update_phase(self, run: IntegrationSyncLog, phase: str, **details: Any) -> None:
        snapshot = dict(run.synced_data or {})
        snapshot.update(details)
        snapshot["phase"] = phase
        run.synced_data = snapshot
        self.session.commit()

    def finish(
        self,
        run: IntegrationSyncLog,
        status: SyncStatus,
        *,
        final_stats: Mapping[str, Any] | None = None,
        error_message: str | None = None,
    ) -> IntegrationSyncLog:
        """Apply the single terminal transition for ``run``."""

        if not status.is_terminal:
            raise ValueError("finish() requires a terminal status.")
        if run.status is not SyncStatus.IN_PROGRESS:
            raise SyncError(f"Sync run {run.id} already finished with status {run.status.value}.")
        run.status = status
        run.completed_at = self.clock()
        if final_stats is not None:
            run.synced_data = dict(final_stats)
        run.error_message = error_message
        self.session.commit()
        logger.info(
            "Sync run %s finished with status %s",
            run.id,
            status.value,
            extra={"sync_run_id": run.id, "sync_status": status.value},
        )
        return run

    def fail(self, run: IntegrationSyncLog, error_message: str) -> IntegrationSyncLog:
        """Roll back any pending work and mark ``run`` as failed."""

        self.session.rollback()
        return self.finish(run, SyncStatus.FAILED, error_message=error_message[:2000])


@dataclass(slots=True)
class RunSummary:
    id: int
    integration_type: str
    sync_type: str
    status: str
    started_at: datetime | None
    completed_at: datetime | None
    duration_seconds: float | None
    synced_data: Mapping[str, Any] | None
    error_message: str | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "integration_type": self.integration_type,
            "sync_type": self.sync_type,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "synced_data": dict(self.synced_data) if self.synced_data else None,
            "error_message": self.error_message,
        }


class SyncRunService:
    """Read-only queries over sync history."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session or db.session

    def list_runs(
        self,
        *,
        integration_type: str | None = INTEGRATION_TYPE,
        limit: int = DEFAULT_HISTORY_LIMIT,
        statuses: tuple[SyncStatus, ...] = (),
    ) -> list[RunSummary]:
        limit = max(1, min(int(limit), MAX_HISTORY_LIMIT))
        stmt = select(IntegrationSyncLog)
        if integration_type:
            stmt = stmt.where(IntegrationSyncLog.integration_type == integration_type)
        if statuses:
            stmt = stmt.where(IntegrationSyncLog.status.in_(statuses))
        stmt = stmt.order_by(IntegrationSyncLog.started_at.desc(), IntegrationSyncLog.id.desc()).limit(limit)
        return [self.summarize(run) for run in self.session.execute(stmt).scalars()]

    def latest_by_sync_type(self, *, integration_type: str = INTEGRATION_TYPE) -> dict[str, RunSummary]:
        latest: dict[str, RunSummary] = {}
        for summary in self.list_runs(integration_type=integration_type, limit=MAX_HISTORY_LIMIT):
            latest.setdefault(summary.sync_type, summary)
        return latest

    def get_run(self, run_id: int) -> RunSummary | None:
        run = self.session.get(IntegrationSyncLog, run_id)
        return self.summarize(run) if run is not None else None

    @staticmethod
    def summarize(run: IntegrationSyncLog) -> RunSummary:
        started_at = _as_utc(run.started_at)
        completed_at = _as_utc(run.completed_at)
        duration_seconds: float | None = None
        if started_at and completed_at:
            duration_seconds = (completed_at - started_at).total_seconds()
        return RunSummary(
            id=run.id,
            integration_type=run.integration_type,
            sync_type=run.sync_type,
            status=run.status.value if isinstance(run.status, SyncStatus) else str(run.status),
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=duration_seconds,
            synced_data=run.synced_data,
            error_message=run.error_message,
        )
