"""
CLI commands for the Workable candidate sync.

Registered on the Flask CLI as ``flask workable ...``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from celery import Celery
from celery.exceptions import TimeoutError as CeleryTimeoutError
from flask import current_app
from flask.cli import ScriptInfo, with_appcontext

from .celery_app import DEFAULT_QUEUE_NAME, get_celery_app
from .errors import ConfigurationError, SyncAlreadyRunningError
from .export import write_csv
from .orchestrator import SyncResult, build_orchestrator
from .run_service import DEFAULT_HISTORY_LIMIT, SyncRunService
from .settings import SyncConfig


@click.group(name="workable")
def workable_cli():
    """Workable candidate sync commands."""


def _resolve_celery(app) -> Celery:
    celery_app = get_celery_app(app)
    if celery_app is None:
        raise click.ClickException(
            "Sync Celery app is unavailable. Set SYNC_WORKER_ENABLED=true and restart to use the worker."
        )
    return celery_app


def _format_summary(result: SyncResult) -> str:
    lines = [
        f"Sync run {result.sync_run_id} finished with status {result.status.value}",
        f"  {result.message}",
        f"  Candidates fetched: {result.total_candidates}",
        f"  Candidates synced:  {result.synced_candidates}",
        f"  Errors:             {len(result.errors)}",
        f"  Duration:           {result.processing_time_seconds:.1f}s",
    ]
    for detail in result.errors[:10]:
        lines.append(f"    - {detail}")
    percentages = result.stats.get("percentages") or {}
    if percentages:
        lines.append(
            "  Coverage: email {email_coverage}%, phone {phone_coverage}%, skills {skills_coverage}%, "
            "active {active_candidates}%".format(**percentages)
        )
    return "\n".join(lines)


@workable_cli.command("sync")
@click.option("--json", "as_json", is_flag=True, help="Print the result payload as JSON.")
@click.option(
    "--csv",
    "csv_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write the crawled candidates to this CSV file.",
)
@click.option("--queue", "queue", is_flag=True, help="Enqueue the sync on the worker instead of running inline.")
@click.option(
    "--enrich-limit",
    type=click.IntRange(min=0),
    default=None,
    help="Merge detail records into the first N candidates (overrides WORKABLE_ENRICH_LIMIT).",
)
@with_appcontext
def workable_sync(as_json: bool, csv_path: Optional[Path], queue: bool, enrich_limit: Optional[int]):
    """
    Crawl every Workable candidate and replace the stored snapshot.
    """
    app = current_app._get_current_object()
    if queue:
        missing = SyncConfig.from_mapping(app.config).missing_settings()
        if missing:
            raise click.ClickException(f"Workable sync is not configured; missing {', '.join(missing)}.")
        celery_app = _resolve_celery(app)
        kwargs = {"csv_path": str(csv_path)} if csv_path else {}
        if enrich_limit is not None:
            kwargs["enrich_limit"] = enrich_limit
        async_result = celery_app.send_task("workable.load_all_candidates", kwargs=kwargs)
        click.echo(f"Queued Workable sync (task_id={async_result.id}, queue={DEFAULT_QUEUE_NAME}).")
        return

    try:
        result = build_orchestrator(app.config).run(export_csv=csv_path is not None, enrich_limit=enrich_limit)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    except SyncAlreadyRunningError as exc:
        raise click.ClickException(str(exc)) from exc

    if csv_path is not None and result.csv_export is not None:
        written = write_csv(result.csv_export, csv_path)
        click.echo(f"Wrote {result.total_candidates} candidates to {written}", err=as_json)

    if as_json:
        payload = result.as_dict()
        payload.pop("csvExport", None)
        click.echo(json.dumps(payload, default=str))
    else:
        click.echo(_format_summary(result))

    if not result.success:
        raise click.ClickException(result.message)


@workable_cli.command("runs")
@click.option("--limit", default=DEFAULT_HISTORY_LIMIT, show_default=True, type=int, help="Number of runs to show.")
@click.option("--json", "as_json", is_flag=True, help="Print runs as JSON.")
@with_appcontext
def workable_runs(limit: int, as_json: bool):
    """
    Show recent Workable sync runs, newest first.
    """
    runs = SyncRunService().list_runs(limit=limit)
    if as_json:
        click.echo(json.dumps([run.as_dict() for run in runs], default=str))
        return
    if not runs:
        click.echo("No Workable sync runs recorded.")
        return
    for run in runs:
        started = run.started_at.strftime("%Y-%m-%d %H:%M:%S") if run.started_at else "-"
        duration = f"{run.duration_seconds:.0f}s" if run.duration_seconds is not None else "running"
        data = run.synced_data or {}
        click.echo(
            f"#{run.id:<5} {run.status:<16} {run.sync_type:<22} started {started}  {duration:>8}  "
            f"synced {data.get('synced_candidates', '-')}/{data.get('total_candidates', data.get('totalCandidates', '-'))}"
        )
        if run.error_message:
            click.echo(f"        error: {run.error_message}")


@workable_cli.group(name="worker")
@click.pass_context
def worker_group(ctx):
    """Manage the sync background worker."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    if not app.config.get("SYNC_WORKER_ENABLED"):
        click.echo(
            "Warning: SYNC_WORKER_ENABLED is false. Commands will still run, "
            "but queued syncs from the API stay disabled.",
            err=True,
        )


@worker_group.command("run")
@click.option("--loglevel", default="info", show_default=True)
@click.option("--beat", is_flag=True, help="Embed the beat scheduler for the nightly sync.")
@click.option("--queues", default=DEFAULT_QUEUE_NAME, show_default=True, help="Comma-separated queue list to consume.")
@click.pass_context
def worker_run(ctx, loglevel: str, beat: bool, queues: str):
    """
    Start the Celery worker in the current process.
    """
    app = ctx.ensure_object(ScriptInfo).load_app()
    state = app.extensions.setdefault("workable", {})
    state["worker_enabled"] = True
    celery_app = _resolve_celery(app)

    # One task at a time: full-replace syncs must never overlap.
    argv = ["worker", "--loglevel", loglevel, "-Q", queues, "--concurrency", "1"]
    if beat:
        argv.append("--beat")
    click.echo(f"Starting sync worker (queues: {queues}, loglevel: {loglevel}{', beat' if beat else ''})")
    try:
        celery_app.worker_main(argv=argv)
    except KeyboardInterrupt:
        click.echo("Worker shutdown requested. Exiting...")


@worker_group.command("ping")
@click.option("--timeout", default=10.0, show_default=True, help="Seconds to wait for a response.")
@click.pass_context
def worker_ping(ctx, timeout: float):
    """
    Validate worker connectivity by executing the heartbeat task.
    """
    app = ctx.ensure_object(ScriptInfo).load_app()
    celery_app = _resolve_celery(app)
    task = celery_app.tasks.get("workable.healthcheck")
    if task is None:
        raise click.ClickException("Heartbeat task 'workable.healthcheck' is not registered.")

    result = task.apply_async()
    try:
        payload = result.get(timeout=timeout)
    except CeleryTimeoutError as exc:
        raise click.ClickException(f"Worker did not respond within {timeout}s") from exc

    click.echo(json.dumps(payload, indent=2))
