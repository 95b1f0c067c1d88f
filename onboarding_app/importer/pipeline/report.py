"""
Completion reporting: job counters, the error-report CSV, and job finalization.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from typing import Mapping

from sqlalchemy.orm import Session

from onboarding_app.models import AuditEvent, ImportJob, ImportJobStatus
from onboarding_app.models.base import utcnow

from .load_core import RowAction

ERROR_REPORT_HEADER = "rowNumber,reason,row"
AUDIT_ACTION_IMPORT_COMPLETED = "IMPORT_COMPLETED"
AUDIT_ENTITY_IMPORT_JOB = "ImportJob"


def default_error_report_key(source_key: str, status_id: str) -> str:
    """Deterministic report location next to the uploaded object."""

    return f"{source_key}.errors.{status_id}.csv"


@dataclass
class ImportSummary:
    """Running counters for one import job."""

    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, action: RowAction) -> None:
        if action == "created":
            self.created += 1
        elif action == "updated":
            self.updated += 1
        else:
            self.skipped += 1

    @property
    def status(self) -> ImportJobStatus:
        return ImportJobStatus.COMPLETED_WITH_ERRORS if self.errors else ImportJobStatus.COMPLETED

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class RowError:
    row_number: int
    row: Mapping[str, str]
    reason: str


@dataclass
class CompletionReporter:
    """Collects row outcomes and rejected rows until the job is finalized."""

    summary: ImportSummary = field(default_factory=ImportSummary)
    row_errors: list[RowError] = field(default_factory=list)

    def record_outcome(self, action: RowAction) -> None:
        self.summary.record(action)

    def record_error(self, row_number: int, row: Mapping[str, str], reason: str) -> None:
        self.row_errors.append(RowError(row_number=row_number, row=dict(row), reason=reason))
        self.summary.errors += 1

    def render_error_report(self) -> str:
        """
        Serialize rejected rows as ``rowNumber,reason,row``.

        Every data field is quoted; ``row`` holds the canonical row as JSON.
        """

        buffer = io.StringIO()
        buffer.write(ERROR_REPORT_HEADER + "\n")
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for error in self.row_errors:
            writer.writerow(
                [error.row_number, error.reason, json.dumps(dict(error.row), separators=(",", ":"), ensure_ascii=False)]
            )
        return buffer.getvalue()

    def finalize(
        self,
        session: Session,
        job: ImportJob,
        *,
        error_report_key: str | None,
        actor_user_id: str | None = None,
    ) -> AuditEvent:
        """
        Write the final counters onto ``job`` and append the completion audit event.

        The caller is responsible for storing the error report at
        ``error_report_key`` beforehand and for committing.
        """

        summary = self.summary
        job.status = summary.status
        job.processed_lines = summary.processed
        job.created = summary.created
        job.updated = summary.updated
        job.skipped = summary.skipped
        job.errors = summary.errors
        job.error_report_key = error_report_key
        job.processed_at = utcnow()

        event = AuditEvent(
            school_id=job.school_id,
            actor_user_id=actor_user_id,
            action=AUDIT_ACTION_IMPORT_COMPLETED,
            entity_type=AUDIT_ENTITY_IMPORT_JOB,
            entity_id=job.id,
            after_json={**summary.as_dict(), "status": summary.status.value, "errorReportKey": error_report_key},
        )
        session.add(event)
        return event


__all__ = [
    "AUDIT_ACTION_IMPORT_COMPLETED",
    "AUDIT_ENTITY_IMPORT_JOB",
    "CompletionReporter",
    "ERROR_REPORT_HEADER",
    "ImportSummary",
    "RowError",
    "default_error_report_key",
]
