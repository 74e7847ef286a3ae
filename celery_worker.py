# celery_worker.py

"""
Celery entry point for the Workable sync worker.

    celery -A celery_worker.celery worker -Q workable_sync --concurrency 1 --beat

``flask workable worker run`` starts the same worker through the Flask CLI.
"""

from app import create_app
from recruitops.workable.celery_app import EXTENSION_KEY, ensure_celery_app

app = create_app()
celery = ensure_celery_app(app, app.extensions.setdefault(EXTENSION_KEY, {}))
