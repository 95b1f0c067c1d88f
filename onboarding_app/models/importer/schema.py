"""
SQLAlchemy models for importer bookkeeping: the job status record that the
upload flow creates and the importer finalizes, plus the append-only audit log.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from ..base import BaseModel, db, new_id, utcnow


class ImportJobStatus(str, enum.Enum):
    """Lifecycle states for an onboarding import job."""

    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    COMPLETED_WITH_ERRORS = "COMPLETED_WITH_ERRORS"

    @property
    def is_terminal(self) -> bool:
        return self is not ImportJobStatus.PROCESSING


class ImportJob(BaseModel):
    """
    Status record for a single uploaded roster file.

    Stays in ``PROCESSING`` until the importer finishes the whole file; an
    infrastructure failure leaves it there so the job can be retried.
    """

    __tablename__ = "import_jobs"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    school_id: Mapped[str] = mapped_column(db.String(64), nullable=False, index=True)
    status: Mapped[ImportJobStatus] = mapped_column(
        Enum(ImportJobStatus, name="import_job_status_enum"),
        nullable=False,
        default=ImportJobStatus.PROCESSING,
        index=True,
    )
    source_bucket: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    source_key: Mapped[str | None] = mapped_column(db.String(1024), nullable=True)
    processed_lines: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    created: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    updated: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    skipped: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    errors: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    error_report_key: Mapped[str | None] = mapped_column(db.String(1024), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    trigger_payload_json: Mapped[dict | None] = mapped_column(
        db.JSON,
        nullable=True,
        comment="Trigger payload stored for retry support (bucket, key, schoolId, statusTable, statusId).",
    )

    __table_args__ = (Index("idx_import_jobs_school_status", "school_id", "status"),)

    def to_status_payload(self) -> dict:
        """Serialize the completion fields using the external camelCase names."""
        return {
            "status": self.status.value if self.status else None,
            "processedLines": self.processed_lines,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "errorReportKey": self.error_report_key,
            "processedAt": self.processed_at.isoformat() if self.processed_at else None,
        }

    def __repr__(self):
        return f"<ImportJob {self.id} {self.status}>"


class AuditEvent(db.Model):
    """Append-only audit trail entry."""

    __tablename__ = "audit_events"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    school_id: Mapped[str] = mapped_column(db.String(64), nullable=False, index=True)
    actor_user_id: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    action: Mapped[str] = mapped_column(db.String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(db.String(100), nullable=False)
    entity_id: Mapped[str] = mapped_column(db.String(64), nullable=False)
    after_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("idx_audit_events_entity", "entity_type", "entity_id"),)
