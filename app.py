# app.py

import logging
import os

from dotenv import load_dotenv
from flask import Flask, Response, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import event

# Load environment variables from .env file first
load_dotenv()

# Module imports after load_dotenv() - E402 is intentional
from config import DevelopmentConfig, ProductionConfig, TestingConfig  # noqa: E402
from config.monitoring import (  # noqa: E402
    DevelopmentMonitoringConfig,
    ProductionMonitoringConfig,
    TestingMonitoringConfig,
)
from config.validation import validate_and_exit  # noqa: E402
from recruitops.models import db  # noqa: E402
from recruitops.utils.logging_config import setup_logging  # noqa: E402
from recruitops.workable import init_workable  # noqa: E402

logger = logging.getLogger(__name__)

CONFIG_BY_ENV = {
    "production": (ProductionConfig, ProductionMonitoringConfig),
    "testing": (TestingConfig, TestingMonitoringConfig),
    "development": (DevelopmentConfig, DevelopmentMonitoringConfig),
}


def _configure_sqlite_connection_factory(*, enable_foreign_keys: bool):
    """Return a connection hook applying concurrency-friendly pragmas."""

    def _configure_sqlite_connection(dbapi_connection, connection_record):  # pragma: no cover - instrumentation
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            if enable_foreign_keys:
                cursor.execute("PRAGMA foreign_keys=ON")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to apply SQLite PRAGMAs: %s", exc)
        finally:
            cursor.close()

    return _configure_sqlite_connection


def _register_metrics_endpoint(app: Flask) -> None:
    endpoint = app.config.get("METRICS_ENDPOINT", "/metrics")

    def metrics():
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    app.add_url_rule(endpoint, endpoint="metrics", view_func=metrics)


def create_app(config_class=None, monitoring_class=None) -> Flask:
    """
    Build the Flask application.

    Without explicit classes the configuration is picked from ``FLASK_ENV``
    (``production``, ``testing`` or ``development``).
    """
    flask_env = os.environ.get("FLASK_ENV", "development")
    if config_class is None and flask_env == "production":
        validate_and_exit(flask_env)

    default_config, default_monitoring = CONFIG_BY_ENV.get(flask_env, CONFIG_BY_ENV["development"])
    app = Flask(__name__)
    app.config.from_object(config_class or default_config)
    app.config.from_object(monitoring_class or default_monitoring)

    setup_logging(app)
    db.init_app(app)

    with app.app_context():
        engine = db.engine
        if engine.url.drivername.startswith("sqlite"):
            if not getattr(engine, "_sqlite_pragmas_configured", False):
                pragma_hook = _configure_sqlite_connection_factory(
                    enable_foreign_keys=not app.config.get("TESTING", False)
                )
                event.listen(engine, "connect", pragma_hook)
                engine._sqlite_pragmas_configured = True  # type: ignore[attr-defined]
        # Create the database tables only if not in testing mode
        if not app.config.get("TESTING", False):
            db.create_all()

    init_workable(app)
    if app.config.get("METRICS_ENABLED", False):
        _register_metrics_endpoint(app)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "service": app.config.get("APP_NAME", "recruitops")})

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port)
