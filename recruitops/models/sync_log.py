"""
Append-only history of integration sync runs.

Each invocation writes one row at start, rewrites its ``synced_data``
snapshot at every checkpoint, and transitions exactly once from
``in_progress`` to a terminal status. A partial unique index allows at
most one ``in_progress`` row per integration, which makes claiming a run
atomic.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db, utcnow


class SyncStatus(str, enum.Enum):
    """Lifecycle states for a sync run."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncStatus.IN_PROGRESS


class IntegrationSyncLog(BaseModel):
    __tablename__ = "integration_sync_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    integration_type: Mapped[str] = mapped_column(db.String(50), nullable=False, index=True)
    sync_type: Mapped[str] = mapped_column(db.String(100), nullable=False)
    status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, name="sync_status_enum"),
        nullable=False,
        default=SyncStatus.IN_PROGRESS,
        index=True,
    )
    started_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    synced_data: Mapped[dict | None] = mapped_column(
        db.JSON,
        nullable=True,
        comment="Latest progress snapshot while running; final statistics once terminal.",
    )
    error_message: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    __table_args__ = (Index("ix_sync_logs_integration_status", "integration_type", "status"),)

    def __repr__(self) -> str:
        return f"<IntegrationSyncLog {self.id} {self.integration_type}/{self.sync_type} {self.status.value}>"


# At most one in-progress run per integration.
Index(
    "uq_sync_logs_one_in_progress",
    IntegrationSyncLog.integration_type,
    unique=True,
    sqlite_where=IntegrationSyncLog.status == SyncStatus.IN_PROGRESS,
    postgresql_where=IntegrationSyncLog.status == SyncStatus.IN_PROGRESS,
)
