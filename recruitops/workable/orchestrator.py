"""
Entry point for a full Workable candidate sync.

A run crawls every candidate page, aggregates statistics over the result,
replaces the stored candidates for the source platform and records the
outcome on the sync log. Page and batch failures are collected and reported
in the summary; only configuration problems, an overlapping run, a failed
delete phase or an unexpected exception end a run early.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping

import requests
from sqlalchemy.orm import Session

from recruitops.models import SyncStatus

from .client import WorkableClient
from .crawler import CrawlResult, PaginationCrawler
from .errors import DeletePhaseError
from .export import candidates_to_csv
from .metrics import record_sync_run
from .reconcile import CandidateStore, ReconcileResult, ReconciliationWriter
from .run_service import SyncRunRecorder
from .settings import SYNC_TYPE_LOAD_ALL, SyncConfig
from .stats import aggregate_candidates

logger = logging.getLogger(__name__)

ERROR_DETAIL_LIMIT = 10


@dataclass
class SyncResult:
    success: bool
    status: SyncStatus
    total_candidates: int
    synced_candidates: int
    message: str
    stats: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    sync_run_id: int | None = None
    processing_time_seconds: float = 0.0
    csv_export: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "status": self.status.value,
            "totalCandidates": self.total_candidates,
            "syncedCandidates": self.synced_candidates,
            "errors": len(self.errors),
            "errorDetails": self.errors[:ERROR_DETAIL_LIMIT],
            "message": self.message,
            "stats": self.stats,
            "syncRunId": self.sync_run_id,
            "processingTimeSeconds": round(self.processing_time_seconds, 3),
        }
        if self.csv_export is not None:
            payload["csvExport"] = self.csv_export
        return payload


class SyncOrchestrator:
    """Sequence crawl, statistics and reconciliation for one sync run."""

    def __init__(
        self,
        config: SyncConfig,
        *,
        http_session: requests.Session | None = None,
        db_session: Session | None = None,
        sleep_fn=time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config.validate()
        self.sleep = sleep_fn
        self.logger = logger or logging.getLogger(__name__)
        self.client = WorkableClient.from_config(config, session=http_session, sleep_fn=sleep_fn)
        self.store = CandidateStore(db_session)
        self.recorder = SyncRunRecorder(
            db_session,
            integration_type=config.integration_type,
            stale_after=timedelta(minutes=config.lock_stale_minutes),
        )

    def run(
        self,
        *,
        export_csv: bool = False,
        sync_type: str = SYNC_TYPE_LOAD_ALL,
        enrich_limit: int | None = None,
    ) -> SyncResult:
        """
        Execute a full sync and return its summary.

        ``enrich_limit`` overrides the configured number of candidates whose
        detail record is merged in before normalization.

        Raises ``SyncAlreadyRunningError`` before any network call when another
        run is active. Unexpected exceptions mark the run failed and propagate.
        """
        started = time.perf_counter()
        synced_at = datetime.now(timezone.utc)
        run = self.recorder.start(sync_type)

        try:
            crawl = self._crawl(run, synced_at, enrich_limit)
            stats = self._aggregate(crawl)
            page_errors = [error.describe() for error in crawl.errors]
            csv_export = candidates_to_csv(crawl.candidates) if export_csv else None

            if not crawl.candidates and crawl.errors:
                # Nothing fetched but pages failed: keep the previous snapshot instead of wiping it.
                message = (
                    f"No candidates loaded after {len(crawl.errors)} page errors; existing candidates were kept."
                )
                return self._finish(
                    run,
                    SyncStatus.PARTIAL_SUCCESS,
                    crawl=crawl,
                    reconciled=None,
                    errors=page_errors,
                    stats=stats,
                    message=message,
                    started=started,
                    csv_export=csv_export,
                )

            self.recorder.update_phase(run, "writing", totalCandidates=len(crawl.candidates))
            writer = ReconciliationWriter(
                self.store,
                source_platform=self.config.source_platform,
                batch_size=self.config.write_batch_size,
                batch_delay=self.config.write_delay_seconds,
                sync_run_id=run.id,
                sleep_fn=self.sleep,
            )
            try:
                reconciled = writer.reconcile(crawl.candidates)
            except DeletePhaseError as exc:
                self.logger.error(
                    "Delete phase failed; discarding %s crawled candidates",
                    len(crawl.candidates),
                    extra={"sync_run_id": run.id},
                )
                return self._finish(
                    run,
                    SyncStatus.FAILED,
                    crawl=crawl,
                    reconciled=None,
                    errors=page_errors + [str(exc)],
                    stats=stats,
                    message=f"Sync failed while clearing existing candidates: {exc}",
                    started=started,
                    csv_export=csv_export,
                    error_message=str(exc),
                )

            errors = page_errors + [str(error) for error in reconciled.errors]
            if len(errors) > self.config.error_threshold or crawl.aborted:
                status = SyncStatus.PARTIAL_SUCCESS
            else:
                status = SyncStatus.SUCCESS
            message = f"Complete import finished: {reconciled.created}/{len(crawl.candidates)} candidates synced"
            if errors:
                message += f" with {len(errors)} errors"
            if crawl.aborted:
                message += " (crawl stopped early after repeated page errors)"
            return self._finish(
                run,
                status,
                crawl=crawl,
                reconciled=reconciled,
                errors=errors,
                stats=stats,
                message=message,
                started=started,
                csv_export=csv_export,
            )
        except Exception as exc:
            self.logger.exception("Workable sync run %s failed", run.id, extra={"sync_run_id": run.id})
            self.recorder.fail(run, str(exc) or exc.__class__.__name__)
            record_sync_run(
                status=SyncStatus.FAILED.value,
                duration_seconds=time.perf_counter() - started,
                total_candidates=0,
                synced_candidates=0,
            )
            raise

    # Internal helpers -----------------------------------------------------------

    def _crawl(self, run, synced_at: datetime, enrich_limit: int | None = None) -> CrawlResult:
        crawler = PaginationCrawler(
            self.client,
            page_size=self.config.page_size,
            max_pages=self.config.max_pages,
            page_delay=self.config.page_delay_seconds,
            checkpoint_every=self.config.checkpoint_every,
            max_consecutive_errors=self.config.max_consecutive_page_errors,
            enrich_limit=self.config.enrich_limit if enrich_limit is None else enrich_limit,
            enrich_delay=self.config.enrich_delay_seconds,
            on_progress=self.recorder.progress_sink(run),
            sleep_fn=self.sleep,
        )
        return crawler.crawl(synced_at=synced_at)

    def _aggregate(self, crawl: CrawlResult) -> Dict[str, Any]:
        stats = aggregate_candidates(
            crawl.candidates,
            top_skills=self.config.top_skills,
            top_locations=self.config.top_locations,
        ).as_dict()
        stats["pages_processed"] = crawl.pages_fetched
        stats["api_endpoint"] = self.client.candidates_url
        stats["stop_reason"] = crawl.stop_reason.value if crawl.stop_reason else None
        stats["enriched_candidates"] = crawl.enriched
        stats["enrichment_failures"] = crawl.enrichment_failures
        return stats

    def _finish(
        self,
        run,
        status: SyncStatus,
        *,
        crawl: CrawlResult,
        reconciled: ReconcileResult | None,
        errors: List[str],
        stats: Dict[str, Any],
        message: str,
        started: float,
        csv_export: str | None,
        error_message: str | None = None,
    ) -> SyncResult:
        synced = reconciled.created if reconciled else 0
        elapsed = time.perf_counter() - started
        self.recorder.finish(
            run,
            status,
            final_stats={
                "phase": "finished",
                "total_candidates": len(crawl.candidates),
                "synced_candidates": synced,
                "deleted_candidates": reconciled.deleted if reconciled else 0,
                "write_batches": reconciled.batches_attempted if reconciled else 0,
                "errors": len(errors),
                "error_details": errors[:ERROR_DETAIL_LIMIT],
                "message": message,
                "stats": stats,
            },
            error_message=error_message,
        )
        record_sync_run(
            status=status.value,
            duration_seconds=elapsed,
            total_candidates=len(crawl.candidates),
            synced_candidates=synced,
        )
        self.logger.info(
            message,
            extra={
                "sync_run_id": run.id,
                "sync_status": status.value,
                "sync_total_candidates": len(crawl.candidates),
                "sync_synced_candidates": synced,
                "sync_errors": len(errors),
                "sync_duration_seconds": round(elapsed, 3),
            },
        )
        return SyncResult(
            success=status is not SyncStatus.FAILED,
            status=status,
            total_candidates=len(crawl.candidates),
            synced_candidates=synced,
            message=message,
            stats=stats,
            errors=errors,
            sync_run_id=run.id,
            processing_time_seconds=elapsed,
            csv_export=csv_export,
        )


def build_orchestrator(config: Mapping[str, Any], **kwargs: Any) -> SyncOrchestrator:
    """Build an orchestrator from a Flask config mapping."""

    return SyncOrchestrator(SyncConfig.from_mapping(config), **kwargs)
