"""
Workable candidate sync feature package.

Registers the sync API blueprint, the ``flask workable`` CLI group and the
optional Celery worker on an application.
"""

from __future__ import annotations

from flask import Flask

from .celery_app import EXTENSION_KEY, ensure_celery_app, get_celery_app
from .cli import workable_cli
from .errors import (
    ConfigurationError,
    DeletePhaseError,
    SyncAlreadyRunningError,
    SyncError,
    ThrottleError,
    TransportError,
    WriteBatchError,
)
from .orchestrator import SyncOrchestrator, SyncResult, build_orchestrator
from .run_service import SyncRunRecorder, SyncRunService
from .settings import SyncConfig
from .views import workable_blueprint

__all__ = [
    "init_workable",
    "get_celery_app",
    "SyncConfig",
    "SyncOrchestrator",
    "SyncResult",
    "SyncRunRecorder",
    "SyncRunService",
    "build_orchestrator",
    "SyncError",
    "ConfigurationError",
    "TransportError",
    "ThrottleError",
    "WriteBatchError",
    "DeletePhaseError",
    "SyncAlreadyRunningError",
]


def _ensure_extension_state(app: Flask) -> dict:
    return app.extensions.setdefault(
        EXTENSION_KEY,
        {
            "worker_enabled": False,
            "celery_app": None,
            "missing_settings": [],
        },
    )


def init_workable(app: Flask) -> None:
    """
    Mount the sync blueprint and CLI, and configure Celery when the worker is enabled.

    State is kept in ``app.extensions['workable']``.
    """
    state = _ensure_extension_state(app)
    worker_enabled = bool(app.config.get("SYNC_WORKER_ENABLED", False))
    missing = SyncConfig.from_mapping(app.config).missing_settings()
    state.update({"worker_enabled": worker_enabled, "missing_settings": missing})

    if missing:
        app.logger.warning(
            "Workable sync is not fully configured; missing %s",
            ", ".join(missing),
            extra={"sync_missing_settings": missing},
        )

    if workable_blueprint.name not in app.blueprints:
        app.register_blueprint(workable_blueprint)

    if workable_cli.name in app.cli.commands:
        app.cli.commands.pop(workable_cli.name)
    app.cli.add_command(workable_cli)

    if worker_enabled:
        ensure_celery_app(app, state)

    app.logger.info(
        "Workable sync registered (worker %s)",
        "enabled" if worker_enabled else "disabled",
    )
