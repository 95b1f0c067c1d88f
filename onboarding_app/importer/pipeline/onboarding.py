"""
Onboarding import orchestration.

Reads the uploaded roster, resolves and loads each row in file order, then
writes the error report, finalizes the status record and appends the audit
event. Row problems are recorded and skipped; storage or database failures
roll back the current transaction and propagate with the job still
``PROCESSING`` so the whole file can be retried.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from onboarding_app.importer.adapters import CSVAdapterError, RosterCSVAdapter
from onboarding_app.importer.metrics import record_job_completed, record_row_outcome
from onboarding_app.importer.storage import ObjectStorage, StorageError
from onboarding_app.importer.triggers import TriggerPayload
from onboarding_app.models import ImportJob, ImportJobStatus

from .deterministic import DEFAULT_COUNTRY_CODE
from .load_core import RosterLoader
from .reference_cache import ReferenceDataCache
from .report import CompletionReporter, ImportSummary, default_error_report_key
from .resolution import DUPLICATE_ADMISSION, REASON_SEPARATOR, resolve_row

DEFAULT_STATUS_TABLE = "import_jobs"


class ImportJobNotFound(LookupError):
    """Raised when the trigger names a status record that does not exist for the school."""

    def __init__(self, status_id: str, school_id: str) -> None:
        super().__init__(f"Import job {status_id} not found for school {school_id}.")
        self.status_id = status_id
        self.school_id = school_id


class UnknownStatusTable(ValueError):
    """Raised when the trigger names a status table this importer does not manage."""

    def __init__(self, table: str, known: Iterable[str]) -> None:
        known_tables = tuple(known)
        super().__init__(f"Unknown status table '{table}'. Known tables: {', '.join(known_tables) or 'none'}.")
        self.table = table
        self.known = known_tables


@dataclass(frozen=True)
class OnboardingImportResult:
    summary: ImportSummary
    status: ImportJobStatus
    job_id: str | None
    error_report_key: str | None

    def as_dict(self) -> dict[str, object]:
        return {
            **self.summary.as_dict(),
            "status": self.status.value,
            "jobId": self.job_id,
            "errorReportKey": self.error_report_key,
        }


def _load_status_record(
    session: Session,
    payload: TriggerPayload,
    status_tables: Iterable[str],
) -> ImportJob | None:
    known = tuple(table.lower() for table in status_tables)
    if payload.status_table and payload.status_table.lower() not in known:
        raise UnknownStatusTable(payload.status_table, known)
    if not payload.status_id:
        return None

    table = (payload.status_table or DEFAULT_STATUS_TABLE).lower()
    if table != ImportJob.__tablename__:
        raise UnknownStatusTable(table, known)

    job = session.get(ImportJob, payload.status_id)
    if job is None or job.school_id != payload.school_id:
        raise ImportJobNotFound(payload.status_id, payload.school_id)

    job.status = ImportJobStatus.PROCESSING
    job.source_bucket = payload.bucket
    job.source_key = payload.key
    session.commit()
    return job


def _process_rows(
    session: Session,
    adapter: RosterCSVAdapter,
    loader: RosterLoader,
    reporter: CompletionReporter,
    reference_cache: ReferenceDataCache,
    payload: TriggerPayload,
    default_country_code: str,
) -> None:
    reference = reference_cache.get(payload.school_id)
    logger = current_app.logger

    for row in adapter.iter_rows():
        reporter.summary.processed += 1
        resolution = resolve_row(row.values, reference, default_country_code=default_country_code)
        errors = resolution.errors
        # Rejected rows leave the admission number free for a later corrected row
        if not errors and not loader.claim_admission(resolution.admission_no):
            errors = (DUPLICATE_ADMISSION,)

        if errors:
            reason = REASON_SEPARATOR.join(errors)
            reporter.record_error(row.row_number, row.values, reason)
            record_row_outcome("error")
            logger.debug(
                "Importer rejected row %s: %s",
                row.row_number,
                reason,
                extra={"importer_school_id": payload.school_id, "importer_row_number": row.row_number},
            )
            continue

        outcome = loader.load(resolution)
        session.commit()
        reporter.record_outcome(outcome.action)
        record_row_outcome(outcome.action)


def run_onboarding_import(
    payload: TriggerPayload,
    *,
    session: Session,
    storage: ObjectStorage,
    reference_cache: ReferenceDataCache,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
    status_tables: Iterable[str] = (DEFAULT_STATUS_TABLE,),
) -> OnboardingImportResult:
    """
    Import one uploaded roster file for ``payload.school_id``.

    Returns the job summary. Raises ``StorageError``, ``SQLAlchemyError``,
    ``ImportJobNotFound`` or ``UnknownStatusTable`` on infrastructure or
    trigger problems.
    """

    logger = current_app.logger
    started = time.monotonic()
    log_extra = {
        "importer_school_id": payload.school_id,
        "importer_job_id": payload.status_id,
        "importer_source": f"{payload.bucket}/{payload.key}",
    }
    logger.info("Onboarding import started", extra=log_extra)

    reporter = CompletionReporter()
    error_report_key: str | None = None
    try:
        job = _load_status_record(session, payload, status_tables)
        adapter = RosterCSVAdapter(storage.get_bytes(payload.bucket, payload.key))
        loader = RosterLoader(session, payload.school_id)
        _process_rows(session, adapter, loader, reporter, reference_cache, payload, default_country_code)

        if job is not None:
            if reporter.row_errors:
                error_report_key = payload.error_report_key or default_error_report_key(payload.key, job.id)
                storage.put_text(payload.bucket, error_report_key, reporter.render_error_report())
            reporter.finalize(session, job, error_report_key=error_report_key)
            session.commit()
    except (StorageError, SQLAlchemyError, CSVAdapterError):
        session.rollback()
        logger.exception(
            "Onboarding import failed; status record left in PROCESSING",
            extra={**log_extra, "importer_rows_processed": reporter.summary.processed},
        )
        raise

    summary = reporter.summary
    duration = time.monotonic() - started
    record_job_completed(status=summary.status.value, duration_seconds=duration)
    logger.info(
        "Onboarding import finished with status %s",
        summary.status.value,
        extra={
            **log_extra,
            "importer_counts": summary.as_dict(),
            "importer_error_report_key": error_report_key,
            "importer_duration_seconds": round(duration, 3),
        },
    )
    return OnboardingImportResult(
        summary=summary,
        status=summary.status,
        job_id=job.id if job is not None else None,
        error_report_key=error_report_key,
    )


__all__ = [
    "DEFAULT_STATUS_TABLE",
    "ImportJobNotFound",
    "OnboardingImportResult",
    "UnknownStatusTable",
    "run_onboarding_import",
]
