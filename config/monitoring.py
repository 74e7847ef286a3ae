# config/monitoring.py

import os

from prometheus_client import Counter, Histogram


class MonitoringConfig:
    """Logging and metrics configuration"""

    # Metrics
    METRICS_ENABLED = os.environ.get("METRICS_ENABLED", "true").lower() == "true"
    METRICS_ENDPOINT = os.environ.get("METRICS_ENDPOINT", "/metrics")

    # Logging Configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")  # 'json' or 'text'
    LOG_DIR = os.environ.get("LOG_DIR", "logs")
    LOG_FILE_MAX_BYTES = int(os.environ.get("LOG_FILE_MAX_BYTES", 10485760))  # 10MB
    LOG_FILE_BACKUP_COUNT = int(os.environ.get("LOG_FILE_BACKUP_COUNT", 10))

    # Console and File Logging
    ENABLE_FILE_LOGGING = os.environ.get("ENABLE_FILE_LOGGING", "true").lower() == "true"
    ENABLE_CONSOLE_LOGGING = os.environ.get("ENABLE_CONSOLE_LOGGING", "true").lower() == "true"

    # Application Info
    APP_NAME = os.environ.get("APP_NAME", "recruitops")
    APP_VERSION = os.environ.get("APP_VERSION", "0.1.0")


class DevelopmentMonitoringConfig(MonitoringConfig):
    """Development-specific monitoring configuration"""

    LOG_LEVEL = "DEBUG"
    LOG_FORMAT = "text"  # More readable in development
    ENABLE_FILE_LOGGING = True
    ENABLE_CONSOLE_LOGGING = True


class ProductionMonitoringConfig(MonitoringConfig):
    """Production-specific monitoring configuration"""

    LOG_LEVEL = "INFO"
    LOG_FORMAT = "json"  # Structured logging for production
    ENABLE_FILE_LOGGING = True
    ENABLE_CONSOLE_LOGGING = True


class TestingMonitoringConfig(MonitoringConfig):
    """Testing-specific monitoring configuration"""

    METRICS_ENABLED = False
    LOG_LEVEL = "WARNING"
    LOG_FORMAT = "text"
    ENABLE_FILE_LOGGING = False
    ENABLE_CONSOLE_LOGGING = False


class SyncApiMonitoring:
    """Prometheus metric helpers for the sync API endpoints."""

    REQUEST_COUNTER = Counter(
        "sync_api_requests_total",
        "Total Workable sync API requests.",
        labelnames=("endpoint", "status"),
    )
    REQUEST_LATENCY = Histogram(
        "sync_api_request_seconds",
        "Latency histogram for Workable sync API requests.",
        labelnames=("endpoint",),
        buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 30, 120, 600),
    )

    @classmethod
    def record(cls, endpoint: str, status: int, duration_seconds: float) -> None:
        cls.REQUEST_COUNTER.labels(endpoint=endpoint, status=str(int(status))).inc()
        cls.REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration_seconds)
