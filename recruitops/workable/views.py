"""
Workable sync HTTP endpoints.
"""

from __future__ import annotations

import time
from http import HTTPStatus

from flask import Blueprint, current_app, g, jsonify, request

from config.monitoring import SyncApiMonitoring

from .celery_app import DEFAULT_QUEUE_NAME, get_celery_app
from .errors import ConfigurationError, SyncAlreadyRunningError
from .orchestrator import build_orchestrator
from .run_service import DEFAULT_HISTORY_LIMIT, SyncRunService
from .settings import DEFAULT_ENRICH_LIMIT, SYNC_TYPE_LOAD_ALL, SyncConfig

workable_blueprint = Blueprint("workable", __name__, url_prefix="/api/workable")

SUPPORTED_ACTIONS = (SYNC_TYPE_LOAD_ALL,)
SYNC_TASK_NAME = "workable.load_all_candidates"


@workable_blueprint.before_request
def _start_timer():
    g.workable_request_started = time.perf_counter()


@workable_blueprint.after_request
def _record_request(response):
    started = g.pop("workable_request_started", None)
    if started is not None and current_app.config.get("METRICS_ENABLED", True):
        SyncApiMonitoring.record(request.endpoint or "unknown", response.status_code, time.perf_counter() - started)
    return response


def _json_error(message: str, status: HTTPStatus, **extra):
    return jsonify({"success": False, "error": message, **extra}), status


def _coerce_limit(value, default: int = DEFAULT_HISTORY_LIMIT) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return limit if limit > 0 else default


@workable_blueprint.get("/health")
def workable_health():
    """
    Report whether the sync is configured and summarize the latest run.
    """
    config = SyncConfig.from_mapping(current_app.config)
    missing = config.missing_settings()
    state = current_app.extensions.get("workable", {})
    latest = SyncRunService().list_runs(limit=1)
    return (
        jsonify(
            {
                "status": "ok" if not missing else "misconfigured",
                "missing_settings": missing,
                "worker_enabled": state.get("worker_enabled", False),
                "queue": DEFAULT_QUEUE_NAME,
                "latest_run": latest[0].as_dict() if latest else None,
            }
        ),
        HTTPStatus.OK,
    )


@workable_blueprint.post("/sync")
def trigger_sync():
    """
    Run (or enqueue) a sync.

    Body: ``{"action": "load_all_candidates", "exportFormat": "csv"?, "async": bool?,
    "includeEnrichment": bool?, "enrichLimit": int?}``.
    """
    payload = request.get_json(silent=True) or {}
    action = payload.get("action") or SYNC_TYPE_LOAD_ALL
    if action not in SUPPORTED_ACTIONS:
        return _json_error(f"Unsupported action '{action}'.", HTTPStatus.BAD_REQUEST)
    export_csv = str(payload.get("exportFormat") or "").lower() == "csv"
    enrich_limit = _requested_enrich_limit(payload)

    if payload.get("async"):
        return _enqueue_sync(export_csv=export_csv, enrich_limit=enrich_limit)

    try:
        orchestrator = build_orchestrator(current_app.config)
        result = orchestrator.run(export_csv=export_csv, sync_type=action, enrich_limit=enrich_limit)
    except ConfigurationError as exc:
        current_app.logger.error("Workable sync rejected: %s", exc, extra={"sync_missing": list(exc.missing)})
        return _json_error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR, missing=list(exc.missing))
    except SyncAlreadyRunningError as exc:
        return _json_error(str(exc), HTTPStatus.CONFLICT, syncRunId=exc.run_id)
    except Exception as exc:  # noqa: BLE001
        current_app.logger.exception("Workable sync failed unexpectedly.")
        return _json_error(str(exc) or exc.__class__.__name__, HTTPStatus.INTERNAL_SERVER_ERROR)

    status = HTTPStatus.OK if result.success else HTTPStatus.INTERNAL_SERVER_ERROR
    return jsonify(result.as_dict()), status


def _requested_enrich_limit(payload) -> int | None:
    if "enrichLimit" in payload:
        try:
            return max(0, int(payload["enrichLimit"]))
        except (TypeError, ValueError):
            return None
    if payload.get("includeEnrichment"):
        return DEFAULT_ENRICH_LIMIT
    return None


def _enqueue_sync(*, export_csv: bool, enrich_limit: int | None = None):
    state = current_app.extensions.get("workable", {})
    if not state.get("worker_enabled"):
        return _json_error(
            "Background worker disabled; set SYNC_WORKER_ENABLED=true to queue syncs.",
            HTTPStatus.SERVICE_UNAVAILABLE,
        )
    missing = SyncConfig.from_mapping(current_app.config).missing_settings()
    if missing:
        return _json_error(
            f"Workable sync is not configured; missing {', '.join(missing)}.",
            HTTPStatus.INTERNAL_SERVER_ERROR,
            missing=missing,
        )
    celery_app = get_celery_app(current_app)
    if celery_app is None:
        return _json_error("Celery app unavailable.", HTTPStatus.INTERNAL_SERVER_ERROR)
    task_kwargs = {"export_csv": export_csv}
    if enrich_limit is not None:
        task_kwargs["enrich_limit"] = enrich_limit
    async_result = celery_app.send_task(SYNC_TASK_NAME, kwargs=task_kwargs)
    current_app.logger.info("Queued Workable sync task", extra={"sync_task_id": async_result.id})
    return (
        jsonify({"success": True, "queued": True, "taskId": async_result.id, "queue": DEFAULT_QUEUE_NAME}),
        HTTPStatus.ACCEPTED,
    )


@workable_blueprint.get("/sync-runs")
def list_sync_runs():
    limit = _coerce_limit(request.args.get("limit"))
    service = SyncRunService()
    runs = service.list_runs(limit=limit)
    latest = service.latest_by_sync_type()
    return (
        jsonify(
            {
                "runs": [run.as_dict() for run in runs],
                "latest": {sync_type: summary.as_dict() for sync_type, summary in latest.items()},
                "limit": limit,
            }
        ),
        HTTPStatus.OK,
    )


@workable_blueprint.get("/sync-runs/<int:run_id>")
def get_sync_run(run_id: int):
    summary = SyncRunService().get_run(run_id)
    if summary is None:
        return _json_error(f"Sync run {run_id} not found.", HTTPStatus.NOT_FOUND)
    return jsonify(summary.as_dict()), HTTPStatus.OK
