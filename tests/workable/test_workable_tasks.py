from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from app import create_app
from config import TestingConfig
from config.monitoring import TestingMonitoringConfig
from recruitops.models import Candidate, SyncStatus, db
from recruitops.workable import get_celery_app
from recruitops.workable import tasks as tasks_module
from recruitops.workable.celery_app import DEFAULT_QUEUE_NAME, SCHEDULED_SYNC_ENTRY
from recruitops.workable.errors import SyncAlreadyRunningError
from recruitops.workable.orchestrator import SyncOrchestrator, SyncResult
from recruitops.workable.settings import SyncConfig


def build_worker_app(tmp_path, **overrides):
    attrs = {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'worker.db'}",
        "SYNC_WORKER_ENABLED": True,
        "CELERY_SQLITE_PATH": str(tmp_path / "celery.sqlite"),
        "CELERY_CONFIG": {"task_always_eager": True, "task_eager_propagates": True},
    }
    attrs.update(overrides)
    config_class = type("WorkerTestingConfig", (TestingConfig,), attrs)
    worker_app = create_app(config_class, TestingMonitoringConfig)
    with worker_app.app_context():
        db.create_all()
    return worker_app


def _result(**changes) -> SyncResult:
    values: Dict[str, Any] = {
        "success": True,
        "status": SyncStatus.SUCCESS,
        "total_candidates": 2,
        "synced_candidates": 2,
        "message": "Complete import finished: 2/2 candidates synced",
        "sync_run_id": 7,
    }
    values.update(changes)
    return SyncResult(**values)


class StubOrchestrator:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def run(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_celery_defaults_to_sqlite_transport(tmp_path):
    worker_app = build_worker_app(tmp_path)

    celery_app = get_celery_app(worker_app)

    assert celery_app is not None
    assert celery_app.conf.broker_url.startswith("sqla+sqlite:///")
    assert "celery.sqlite" in celery_app.conf.broker_url
    assert celery_app.conf.result_backend.startswith("db+sqlite:///")
    assert celery_app.conf.task_default_queue == DEFAULT_QUEUE_NAME
    assert celery_app.conf.worker_concurrency == 1
    assert celery_app.conf.beat_schedule == {}
    assert "workable.load_all_candidates" in celery_app.tasks


def test_nightly_schedule_when_enabled(tmp_path):
    worker_app = build_worker_app(tmp_path, SYNC_SCHEDULE_ENABLED=True, SYNC_SCHEDULE_HOUR_UTC=4)

    schedule = get_celery_app(worker_app).conf.beat_schedule

    entry = schedule[SCHEDULED_SYNC_ENTRY]
    assert entry["task"] == "workable.load_all_candidates"
    assert entry["schedule"].hour == {4}


def test_celery_app_absent_when_worker_disabled(app):
    assert get_celery_app(app) is None


def test_load_all_candidates_task_runs_sync(tmp_path, monkeypatch, fake_workable_api, raw_candidates):
    worker_app = build_worker_app(tmp_path)
    api = fake_workable_api(raw_candidates(5))

    def _build(config, **kwargs):
        return SyncOrchestrator(SyncConfig.from_mapping(config), http_session=api, sleep_fn=lambda *_: None)

    monkeypatch.setattr(tasks_module, "build_orchestrator", _build)
    task = get_celery_app(worker_app).tasks["workable.load_all_candidates"]

    payload = task.apply().get()

    assert payload["success"] is True
    assert payload["syncedCandidates"] == 5
    assert payload["taskId"]
    with worker_app.app_context():
        assert db.session.query(Candidate).count() == 5


def test_load_all_candidates_task_writes_csv(tmp_path, monkeypatch):
    worker_app = build_worker_app(tmp_path)
    stub = StubOrchestrator(_result(csv_export="ID,Name\n1,Ada\n"))
    monkeypatch.setattr(tasks_module, "build_orchestrator", lambda config: stub)
    target = tmp_path / "exports" / "nightly.csv"

    task = get_celery_app(worker_app).tasks["workable.load_all_candidates"]
    payload = task.apply(kwargs={"csv_path": str(target)}).get()

    assert stub.calls == [{"export_csv": True, "enrich_limit": None}]
    assert payload["csvPath"] == str(target)
    assert "csvExport" not in payload
    assert target.read_text(encoding="utf-8") == "ID,Name\n1,Ada\n"


def test_load_all_candidates_task_skips_overlapping_run(tmp_path, monkeypatch):
    worker_app = build_worker_app(tmp_path)
    started = datetime(2024, 1, 1, tzinfo=timezone.utc)
    stub = StubOrchestrator(SyncAlreadyRunningError("workable", 3, started))
    monkeypatch.setattr(tasks_module, "build_orchestrator", lambda config: stub)

    task = get_celery_app(worker_app).tasks["workable.load_all_candidates"]
    payload = task.apply().get()

    assert payload["skipped"] is True
    assert payload["syncRunId"] == 3
    assert payload["success"] is False


def test_worker_ping_cli(tmp_path):
    worker_app = build_worker_app(tmp_path)

    result = worker_app.test_cli_runner().invoke(args=["workable", "worker", "ping"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["status"] == "ok"
    assert "timestamp" in payload


def test_worker_run_invokes_celery(tmp_path, monkeypatch):
    worker_app = build_worker_app(tmp_path)
    celery_app = get_celery_app(worker_app)
    calls: Dict[str, Any] = {}

    def fake_worker_main(argv=None):
        calls["argv"] = argv

    monkeypatch.setattr(celery_app, "worker_main", fake_worker_main)

    result = worker_app.test_cli_runner().invoke(
        args=["workable", "worker", "run", "--loglevel", "debug", "--beat"]
    )

    assert result.exit_code == 0, result.output
    assert calls["argv"] == [
        "worker",
        "--loglevel",
        "debug",
        "-Q",
        DEFAULT_QUEUE_NAME,
        "--concurrency",
        "1",
        "--beat",
    ]


def test_healthcheck_task_payload(tmp_path):
    worker_app = build_worker_app(tmp_path)

    payload = get_celery_app(worker_app).tasks["workable.healthcheck"].apply().get()

    assert payload["status"] == "ok"
