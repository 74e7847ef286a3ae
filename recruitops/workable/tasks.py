"""
Workable sync Celery tasks.

``workable.load_all_candidates`` is the scheduled entry point; it runs the
same orchestrator as the HTTP and CLI surfaces inside the Flask app context
provided by ``FlaskContextTask``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from celery import shared_task
from flask import current_app

from .errors import SyncAlreadyRunningError
from .export import write_csv
from .orchestrator import build_orchestrator


@shared_task(name="workable.healthcheck", bind=True)
def workable_healthcheck(self) -> dict[str, Any]:
    """
    Heartbeat task used by worker health checks.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "worker_hostname": self.request.hostname,
    }


@shared_task(name="workable.load_all_candidates", bind=True)
def load_all_candidates(
    self,
    *,
    export_csv: bool = False,
    csv_path: str | None = None,
    enrich_limit: int | None = None,
) -> dict[str, Any]:
    """
    Run a full Workable candidate sync.

    An overlapping run is reported as skipped instead of failing the task so
    a late scheduled trigger does not show up as a worker error.
    """
    orchestrator = build_orchestrator(current_app.config)
    try:
        result = orchestrator.run(export_csv=export_csv or bool(csv_path), enrich_limit=enrich_limit)
    except SyncAlreadyRunningError as exc:
        current_app.logger.warning(
            "Skipping Workable sync task; another run is active",
            extra={"sync_run_id": exc.run_id, "sync_task_id": self.request.id},
        )
        return {"success": False, "skipped": True, "error": str(exc), "syncRunId": exc.run_id}

    payload = result.as_dict()
    if csv_path and result.csv_export is not None:
        payload.pop("csvExport", None)
        path = write_csv(result.csv_export, csv_path)
        payload["csvPath"] = str(path)
    payload["taskId"] = self.request.id
    current_app.logger.info(
        "Workable sync task completed",
        extra={
            "sync_task_id": self.request.id,
            "sync_run_id": result.sync_run_id,
            "sync_status": result.status.value,
        },
    )
    return payload
