# recruitops/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db
from .candidate import Candidate, InterviewStage
from .sync_log import IntegrationSyncLog, SyncStatus

__all__ = [
    "db",
    "BaseModel",
    "Candidate",
    "InterviewStage",
    "IntegrationSyncLog",
    "SyncStatus",
]
