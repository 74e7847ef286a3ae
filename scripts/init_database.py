# scripts/init_database.py

"""
Database initialization script.
Creates the candidate and sync-log tables and reports current row counts.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app  # noqa: E402
from recruitops.models import Candidate, IntegrationSyncLog, db  # noqa: E402


def init_database():
    """Create all tables and print a short summary."""
    app = create_app()
    with app.app_context():
        db.create_all()
        candidates = db.session.query(Candidate).count()
        runs = db.session.query(IntegrationSyncLog).count()
        print(f"Database ready at {db.engine.url.render_as_string(hide_password=True)}")
        print(f"  candidates:            {candidates}")
        print(f"  integration_sync_logs: {runs}")


if __name__ == "__main__":
    init_database()
