# onboarding_app/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db, new_id
from .importer import AuditEvent, ImportJob, ImportJobStatus
from .reference import AcademicSession, ClassArm, ClassGroup, ClassYear, Term
from .roster import (
    Enrollment,
    EnrollmentStatus,
    Guardian,
    GuardianRelationship,
    RosterStatus,
    Student,
    StudentGuardianLink,
)

__all__ = [
    "db",
    "BaseModel",
    "new_id",
    # Reference data
    "AcademicSession",
    "ClassArm",
    "ClassGroup",
    "ClassYear",
    "Term",
    # Roster
    "Enrollment",
    "EnrollmentStatus",
    "Guardian",
    "GuardianRelationship",
    "RosterStatus",
    "Student",
    "StudentGuardianLink",
    # Importer bookkeeping
    "AuditEvent",
    "ImportJob",
    "ImportJobStatus",
]
