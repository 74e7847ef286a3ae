# config/base.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce_int(value, default, *, minimum=None, maximum=None):
    """Parse an integer setting, falling back to ``default`` on bad input and clamping to bounds."""
    try:
        number = int(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        number = default
    if minimum is not None:
        number = max(minimum, number)
    if maximum is not None:
        number = min(maximum, number)
    return number


def _coerce_float(value, default, *, minimum=0.0):
    try:
        number = float(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        number = default
    return max(minimum, number)


class Config:
    _flask_env = os.environ.get("FLASK_ENV", "development")

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Upstream ATS credentials
    WORKABLE_API_TOKEN = os.environ.get("WORKABLE_API_TOKEN")
    WORKABLE_SUBDOMAIN = os.environ.get("WORKABLE_SUBDOMAIN")
    WORKABLE_INCLUDE = os.environ.get("WORKABLE_INCLUDE", "applications,resume,social_profiles")
    WORKABLE_USER_AGENT = os.environ.get("WORKABLE_USER_AGENT", "recruitops-workable-sync/1.0")

    # Crawl tuning. Workable publishes ~300 requests/minute, hence the 200ms floor.
    WORKABLE_PAGE_SIZE = _coerce_int(os.environ.get("WORKABLE_PAGE_SIZE"), 100, minimum=1, maximum=100)
    WORKABLE_MAX_PAGES = _coerce_int(os.environ.get("WORKABLE_MAX_PAGES"), 200, minimum=1)
    WORKABLE_PAGE_DELAY_SECONDS = _coerce_float(os.environ.get("WORKABLE_PAGE_DELAY_SECONDS"), 0.2)
    WORKABLE_MAX_RETRIES = _coerce_int(os.environ.get("WORKABLE_MAX_RETRIES"), 3, minimum=1)
    WORKABLE_RETRY_BACKOFF_SECONDS = _coerce_float(os.environ.get("WORKABLE_RETRY_BACKOFF_SECONDS"), 1.0)
    WORKABLE_REQUEST_TIMEOUT_SECONDS = _coerce_float(os.environ.get("WORKABLE_REQUEST_TIMEOUT_SECONDS"), 30.0)
    WORKABLE_CHECKPOINT_EVERY = _coerce_int(os.environ.get("WORKABLE_CHECKPOINT_EVERY"), 5, minimum=1)
    # Detail lookups for the first N candidates; 0 disables enrichment.
    WORKABLE_ENRICH_LIMIT = _coerce_int(os.environ.get("WORKABLE_ENRICH_LIMIT"), 0, minimum=0)
    WORKABLE_ENRICH_DELAY_SECONDS = _coerce_float(os.environ.get("WORKABLE_ENRICH_DELAY_SECONDS"), 0.15)
    WORKABLE_MAX_CONSECUTIVE_PAGE_ERRORS = _coerce_int(
        os.environ.get("WORKABLE_MAX_CONSECUTIVE_PAGE_ERRORS"), 10, minimum=0
    )

    # Reconciliation tuning
    SYNC_WRITE_BATCH_SIZE = _coerce_int(os.environ.get("SYNC_WRITE_BATCH_SIZE"), 25, minimum=1, maximum=50)
    SYNC_WRITE_DELAY_SECONDS = _coerce_float(os.environ.get("SYNC_WRITE_DELAY_SECONDS"), 0.1)
    SYNC_ERROR_THRESHOLD = _coerce_int(os.environ.get("SYNC_ERROR_THRESHOLD"), 10, minimum=0)
    SYNC_LOCK_STALE_MINUTES = _coerce_int(os.environ.get("SYNC_LOCK_STALE_MINUTES"), 30, minimum=1)
    SYNC_STATS_TOP_SKILLS = _coerce_int(os.environ.get("SYNC_STATS_TOP_SKILLS"), 20, minimum=1)
    SYNC_STATS_TOP_LOCATIONS = _coerce_int(os.environ.get("SYNC_STATS_TOP_LOCATIONS"), 15, minimum=1)

    # Worker configuration
    SYNC_WORKER_ENABLED = _coerce_bool(os.environ.get("SYNC_WORKER_ENABLED"), default=False)
    SYNC_SCHEDULE_ENABLED = _coerce_bool(os.environ.get("SYNC_SCHEDULE_ENABLED"), default=False)
    SYNC_SCHEDULE_HOUR_UTC = _coerce_int(os.environ.get("SYNC_SCHEDULE_HOUR_UTC"), 3, minimum=0, maximum=23)
    CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND")
    CELERY_SQLITE_PATH = os.environ.get("CELERY_SQLITE_PATH")
    CELERY_CONFIG = os.environ.get("CELERY_CONFIG")
    SYNC_TASK_TIME_LIMIT = _coerce_int(os.environ.get("SYNC_TASK_TIME_LIMIT"), 25 * 60, minimum=60)


class DevelopmentConfig(Config):
    DEBUG = True
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # SQLite URI format: sqlite:///absolute/path (3 slashes for absolute path)
    db_path = os.path.join(instance_path, "recruitops_dev.db").replace("\\", "/")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", f"sqlite:///{db_path}")
    SQLALCHEMY_ECHO = False
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key-for-testing-only"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    WORKABLE_API_TOKEN = "test-token"
    WORKABLE_SUBDOMAIN = "acme"
    WORKABLE_PAGE_DELAY_SECONDS = 0.0
    WORKABLE_RETRY_BACKOFF_SECONDS = 0.0
    WORKABLE_ENRICH_DELAY_SECONDS = 0.0
    SYNC_WRITE_DELAY_SECONDS = 0.0
    SYNC_WORKER_ENABLED = False


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False
