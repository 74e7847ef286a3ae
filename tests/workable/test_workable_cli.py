from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from recruitops.models import SyncStatus
from recruitops.workable import cli as cli_module
from recruitops.workable.orchestrator import SyncOrchestrator
from recruitops.workable.run_service import SyncRunRecorder
from recruitops.workable.settings import SyncConfig


@pytest.fixture
def fake_api(monkeypatch, fake_workable_api, raw_candidates):
    api = fake_workable_api(raw_candidates(6))

    def _build(config, **kwargs):
        return SyncOrchestrator(SyncConfig.from_mapping(config), http_session=api, sleep_fn=lambda *_: None)

    monkeypatch.setattr(cli_module, "build_orchestrator", _build)
    return api


def test_sync_command_prints_summary(runner, fake_api):
    result = runner.invoke(args=["workable", "sync"])

    assert result.exit_code == 0, result.output
    assert "finished with status success" in result.output
    assert "Candidates synced:  6" in result.output


def test_sync_command_json_output(runner, fake_api):
    result = runner.invoke(args=["workable", "sync", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output.strip().splitlines()[-1])
    assert payload["totalCandidates"] == 6
    assert payload["status"] == "success"
    assert "csvExport" not in payload


def test_sync_command_writes_csv(runner, fake_api, tmp_path):
    target = tmp_path / "exports" / "candidates.csv"

    result = runner.invoke(args=["workable", "sync", "--csv", str(target)])

    assert result.exit_code == 0, result.output
    lines = target.read_text(encoding="utf-8").splitlines()
    assert lines[0].split(",")[:3] == ["ID", "Name", "Email"]
    assert len(lines) == 7


def test_sync_command_reports_running_sync(runner, fake_api):
    SyncRunRecorder().start("load_all_candidates")

    result = runner.invoke(args=["workable", "sync"])

    assert result.exit_code != 0
    assert "already running" in result.output


def test_sync_command_reports_missing_configuration(app, runner):
    app.config["WORKABLE_SUBDOMAIN"] = ""

    result = runner.invoke(args=["workable", "sync"])

    assert result.exit_code != 0
    assert "WORKABLE_SUBDOMAIN" in result.output


def test_sync_command_fails_on_failed_run(runner, monkeypatch):
    failed = SimpleNamespace(
        success=False,
        status=SyncStatus.FAILED,
        sync_run_id=1,
        message="Sync failed while clearing existing candidates",
        total_candidates=3,
        synced_candidates=0,
        errors=["locked"],
        processing_time_seconds=0.5,
        stats={},
        csv_export=None,
    )
    monkeypatch.setattr(cli_module, "build_orchestrator", lambda config: SimpleNamespace(run=lambda **kw: failed))

    result = runner.invoke(args=["workable", "sync"])

    assert result.exit_code != 0
    assert "clearing existing candidates" in result.output


def test_sync_command_queue_requires_worker(runner):
    result = runner.invoke(args=["workable", "sync", "--queue"])

    assert result.exit_code != 0
    assert "SYNC_WORKER_ENABLED" in result.output


def test_sync_command_queue_sends_task(runner, monkeypatch, tmp_path):
    sent = {}

    class FakeCelery:
        def send_task(self, name, kwargs=None):
            sent.update(name=name, kwargs=kwargs)
            return SimpleNamespace(id="abc")

    monkeypatch.setattr(cli_module, "get_celery_app", lambda app: FakeCelery())

    result = runner.invoke(args=["workable", "sync", "--queue", "--csv", str(tmp_path / "out.csv")])

    assert result.exit_code == 0, result.output
    assert "task_id=abc" in result.output
    assert sent == {"name": "workable.load_all_candidates", "kwargs": {"csv_path": str(tmp_path / "out.csv")}}


def test_runs_command_lists_history(runner, fake_api):
    runner.invoke(args=["workable", "sync"])

    text = runner.invoke(args=["workable", "runs"])
    assert text.exit_code == 0, text.output
    assert "success" in text.output
    assert "synced 6/6" in text.output

    as_json = runner.invoke(args=["workable", "runs", "--json", "--limit", "1"])
    runs = json.loads(as_json.output)
    assert len(runs) == 1
    assert runs[0]["sync_type"] == "load_all_candidates"


def test_runs_command_without_history(runner):
    result = runner.invoke(args=["workable", "runs"])

    assert result.exit_code == 0
    assert "No Workable sync runs recorded." in result.output
