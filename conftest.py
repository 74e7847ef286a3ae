# conftest.py

import os
import tempfile
import uuid

import pytest

# Set testing environment BEFORE importing app so create_app() picks TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import create_app  # noqa: E402
from config import TestingConfig  # noqa: E402
from config.monitoring import TestingMonitoringConfig  # noqa: E402
from recruitops.models import db  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Create a Flask application backed by an isolated SQLite file."""
    db_fd, temp_db = tempfile.mkstemp(suffix=f"_{uuid.uuid4().hex[:8]}.db")

    class IsolatedTestingConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{temp_db}"

    flask_app = create_app(IsolatedTestingConfig, TestingMonitoringConfig)
    try:
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            yield flask_app
            db.session.remove()
            db.drop_all()
            db.engine.dispose()
    finally:
        try:
            os.close(db_fd)
        except OSError:
            pass
        try:
            if os.path.exists(temp_db):
                os.unlink(temp_db)
        except OSError:
            pass


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


def pytest_configure(config):
    """Register custom markers and make sure the testing environment is active"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
