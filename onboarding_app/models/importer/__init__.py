"""
Importer-specific SQLAlchemy models: job status records and the audit log.
"""

from .schema import AuditEvent, ImportJob, ImportJobStatus

__all__ = [
    "AuditEvent",
    "ImportJob",
    "ImportJobStatus",
]
