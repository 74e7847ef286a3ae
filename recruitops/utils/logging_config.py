"""
Logging setup for the Flask application.

Reads ``LOG_*`` and ``ENABLE_*_LOGGING`` keys from the app config (see
``config.monitoring``) and attaches console and rotating file handlers to
the root logger so module loggers such as ``recruitops.workable.crawler``
share the same output.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from flask import Flask

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Attributes present on every LogRecord; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

_HANDLER_MARKER = "_recruitops_handler"


class JSONFormatter(logging.Formatter):
    """Render records as single-line JSON including ``extra`` fields."""

    def __init__(self, app_name: str = "recruitops"):
        super().__init__()
        self.app_name = app_name

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "app": self.app_name,
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_formatter(app: Flask) -> logging.Formatter:
    if str(app.config.get("LOG_FORMAT", "text")).lower() == "json":
        return JSONFormatter(app.config.get("APP_NAME", "recruitops"))
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def _clear_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(app: Flask) -> None:
    """
    Configure root and application logging from ``app.config``.

    Safe to call repeatedly; handlers installed by a previous call are replaced.
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    formatter = _build_formatter(app)

    root = logging.getLogger()
    _clear_handlers(root)
    root.setLevel(level)

    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        setattr(console, _HANDLER_MARKER, True)
        root.addHandler(console)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "recruitops.log"),
            maxBytes=int(app.config.get("LOG_FILE_MAX_BYTES", 10485760)),
            backupCount=int(app.config.get("LOG_FILE_BACKUP_COUNT", 10)),
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARKER, True)
        root.addHandler(file_handler)

    app.logger.setLevel(level)
    logging.getLogger("werkzeug").setLevel(max(level, logging.INFO))
    app.logger.debug(
        "Logging configured",
        extra={"log_format": app.config.get("LOG_FORMAT"), "log_level": logging.getLevelName(level)},
    )
