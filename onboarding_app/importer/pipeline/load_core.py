"""
Idempotent upserts of resolved roster rows into students, guardians, links and enrollments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from sqlalchemy.orm import Session

from onboarding_app.models import (
    Enrollment,
    EnrollmentStatus,
    Guardian,
    GuardianRelationship,
    RosterStatus,
    Student,
    StudentGuardianLink,
)

from .idempotency import find_one, insert_if_absent
from .resolution import RowResolution

DEFAULT_GUARDIAN_NAME = "Parent"

RowAction = Literal["created", "updated", "skipped"]


@dataclass(frozen=True)
class RowOutcome:
    """What loading one accepted row did to the roster."""

    action: RowAction
    student_id: str
    guardian_id: str
    enrollment_id: str | None
    guardian_created: bool = False


class RosterLoader:
    """
    Applies resolved rows for one school, one row at a time.

    Holds the job-local dedup state: guardian ids keyed by normalized phone and
    by normalized email, and the admission numbers already claimed in this
    file. The state is unsynchronized; a loader must only be driven from a
    single thread.
    """

    def __init__(self, session: Session, school_id: str) -> None:
        self.session = session
        self.school_id = school_id
        self._guardians_by_phone: dict[str, str] = {}
        self._guardians_by_email: dict[str, str] = {}
        self._seen_admissions: set[str] = set()

    def claim_admission(self, admission_no: str) -> bool:
        """Record ``admission_no`` for this file; False when it was already seen."""

        if not admission_no:
            return True
        if admission_no in self._seen_admissions:
            return False
        self._seen_admissions.add(admission_no)
        return True

    def load(self, resolution: RowResolution) -> RowOutcome:
        if not resolution.is_valid:
            raise ValueError(f"Cannot load a rejected row: {resolution.reason}")

        student, student_created, student_updated = self._upsert_student(resolution)
        guardian, guardian_created, guardian_updated = self._resolve_guardian(resolution)
        self._ensure_link(student, guardian)
        enrollment = self._upsert_enrollment(student, resolution)

        if student_created:
            action: RowAction = "created"
        elif student_updated or guardian_updated:
            action = "updated"
        else:
            action = "skipped"

        return RowOutcome(
            action=action,
            student_id=student.id,
            guardian_id=guardian.id,
            enrollment_id=enrollment.id if enrollment is not None else None,
            guardian_created=guardian_created,
        )

    # Students -----------------------------------------------------------------

    def _upsert_student(self, resolution: RowResolution) -> tuple[Student, bool, bool]:
        lookup = {"school_id": self.school_id, "admission_no": resolution.admission_no}
        student = find_one(self.session, Student, lookup)
        if student is None:
            student, created = insert_if_absent(
                self.session,
                Student,
                lookup=lookup,
                values={
                    "first_name": resolution.first_name,
                    "last_name": resolution.last_name,
                    "status": RosterStatus.ACTIVE,
                },
            )
            if created:
                return student, True, False
        return student, False, self._apply_student_changes(student, resolution)

    @staticmethod
    def _apply_student_changes(student: Student, resolution: RowResolution) -> bool:
        changed = False
        if resolution.first_name and resolution.first_name != student.first_name:
            student.first_name = resolution.first_name
            changed = True
        if resolution.last_name and resolution.last_name != student.last_name:
            student.last_name = resolution.last_name
            changed = True
        if student.status is None:
            student.status = RosterStatus.ACTIVE
            changed = True
        return changed

    # Guardians ----------------------------------------------------------------

    def _remember_guardian(self, guardian_id: str, phone: str | None, email: str | None) -> None:
        if phone:
            self._guardians_by_phone[phone] = guardian_id
        if email:
            self._guardians_by_email[email] = guardian_id

    def _resolve_guardian(self, resolution: RowResolution) -> tuple[Guardian, bool, bool]:
        """Return ``(guardian, created, updated)`` for the row's contact details."""

        phone = resolution.parent_phone
        email = resolution.parent_email

        cached_id = (self._guardians_by_phone.get(phone) if phone else None) or (
            self._guardians_by_email.get(email) if email else None
        )
        if cached_id is not None:
            guardian = self.session.get(Guardian, cached_id)
            if guardian is not None:
                self._remember_guardian(guardian.id, phone, email)
                return guardian, False, False

        existing = None
        if phone:
            existing = find_one(self.session, Guardian, {"school_id": self.school_id, "primary_phone": phone})
        if existing is None and email:
            existing = find_one(self.session, Guardian, {"school_id": self.school_id, "email": email})

        if existing is not None:
            self._remember_guardian(existing.id, phone, email)
            return existing, False, self._apply_guardian_changes(existing, resolution)

        values = {
            "full_name": resolution.parent_name or DEFAULT_GUARDIAN_NAME,
            "status": RosterStatus.ACTIVE,
        }
        if phone:
            lookup = {"school_id": self.school_id, "primary_phone": phone}
            values["email"] = email
        else:
            lookup = {"school_id": self.school_id, "email": email}
        guardian, created = insert_if_absent(self.session, Guardian, lookup=lookup, values=values)
        self._remember_guardian(guardian.id, phone, email)
        return guardian, created, False

    @staticmethod
    def _apply_guardian_changes(guardian: Guardian, resolution: RowResolution) -> bool:
        changed = False
        if resolution.parent_name and resolution.parent_name != guardian.full_name:
            guardian.full_name = resolution.parent_name
            changed = True
        if resolution.parent_email and resolution.parent_email != guardian.email:
            guardian.email = resolution.parent_email
            changed = True
        if guardian.status is None:
            guardian.status = RosterStatus.ACTIVE
        return changed

    # Links and enrollments ----------------------------------------------------

    def _ensure_link(self, student: Student, guardian: Guardian) -> StudentGuardianLink:
        link, _ = insert_if_absent(
            self.session,
            StudentGuardianLink,
            lookup={"student_id": student.id, "guardian_id": guardian.id},
            values={
                "school_id": self.school_id,
                "relationship_type": GuardianRelationship.GUARDIAN,
                "is_primary": True,
            },
        )
        return link

    def _upsert_enrollment(self, student: Student, resolution: RowResolution) -> Enrollment | None:
        if not resolution.class_group_id:
            return None

        lookup = {"student_id": student.id, "term_id": resolution.term_id}
        enrollment = find_one(self.session, Enrollment, lookup)
        if enrollment is None:
            enrollment, created = insert_if_absent(
                self.session,
                Enrollment,
                lookup=lookup,
                values={
                    "school_id": self.school_id,
                    "class_group_id": resolution.class_group_id,
                    "session_id": resolution.session_id,
                    "status": EnrollmentStatus.ENROLLED,
                },
            )
            if created:
                return enrollment

        enrollment.class_group_id = resolution.class_group_id
        enrollment.session_id = resolution.session_id or enrollment.session_id
        enrollment.status = EnrollmentStatus.ENROLLED
        return enrollment


__all__ = ["DEFAULT_GUARDIAN_NAME", "RosterLoader", "RowAction", "RowOutcome"]
