# onboarding_app/models/roster.py
"""
Roster entities written by the onboarding importer: students, guardians,
the links between them, and per-term enrollments.
"""

import enum

from sqlalchemy import Enum, Index, UniqueConstraint

from .base import BaseModel, db, new_id


class RosterStatus(str, enum.Enum):
    """Lifecycle status shared by students and guardians."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class EnrollmentStatus(str, enum.Enum):
    ENROLLED = "ENROLLED"
    WITHDRAWN = "WITHDRAWN"


class GuardianRelationship(str, enum.Enum):
    GUARDIAN = "GUARDIAN"
    MOTHER = "MOTHER"
    FATHER = "FATHER"
    OTHER = "OTHER"


class Student(BaseModel):
    """A learner identified within a school by admission number."""

    __tablename__ = "students"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(64), nullable=False, index=True)
    admission_no = db.Column(db.String(64), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    status = db.Column(Enum(RosterStatus, name="roster_status_enum"), nullable=True)

    guardian_links = db.relationship("StudentGuardianLink", back_populates="student", cascade="all, delete-orphan")
    enrollments = db.relationship("Enrollment", back_populates="student", cascade="all, delete-orphan")

    __table_args__ = (UniqueConstraint("school_id", "admission_no", name="uq_students_school_admission"),)

    def __repr__(self):
        return f"<Student {self.admission_no}>"


class Guardian(BaseModel):
    """
    A parent or guardian. Identified by normalized phone, or by email when the
    phone is absent; a normalized phone maps to one guardian per school.
    """

    __tablename__ = "guardians"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(64), nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=False)
    primary_phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    status = db.Column(Enum(RosterStatus, name="roster_status_enum"), nullable=True)

    student_links = db.relationship("StudentGuardianLink", back_populates="guardian", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("school_id", "primary_phone", name="uq_guardians_school_phone"),
        Index("idx_guardians_school_email", "school_id", "email"),
    )

    def __repr__(self):
        return f"<Guardian {self.full_name}>"


class StudentGuardianLink(BaseModel):
    __tablename__ = "student_guardian_links"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(64), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    guardian_id = db.Column(db.String(36), db.ForeignKey("guardians.id", ondelete="CASCADE"), nullable=False)
    relationship_type = db.Column(
        "relationship",
        Enum(GuardianRelationship, name="guardian_relationship_enum"),
        nullable=False,
        default=GuardianRelationship.GUARDIAN,
    )
    is_primary = db.Column(db.Boolean, nullable=False, default=False)

    student = db.relationship("Student", back_populates="guardian_links")
    guardian = db.relationship("Guardian", back_populates="student_links")

    __table_args__ = (UniqueConstraint("student_id", "guardian_id", name="uq_student_guardian_links_pair"),)


class Enrollment(BaseModel):
    """
    Placement of a student in a class group for a term.

    At most one enrollment exists per (student, term); ``term_id`` may be null
    when the upload did not name a term, in which case the null-term row is
    the one that gets updated.
    """

    __tablename__ = "enrollments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(64), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    term_id = db.Column(db.String(36), db.ForeignKey("terms.id"), nullable=True)
    class_group_id = db.Column(db.String(36), db.ForeignKey("class_groups.id"), nullable=False)
    session_id = db.Column(db.String(36), db.ForeignKey("academic_sessions.id"), nullable=True)
    status = db.Column(
        Enum(EnrollmentStatus, name="enrollment_status_enum"),
        nullable=False,
        default=EnrollmentStatus.ENROLLED,
    )

    student = db.relationship("Student", back_populates="enrollments")

    __table_args__ = (UniqueConstraint("student_id", "term_id", name="uq_enrollments_student_term"),)

    def __repr__(self):
        return f"<Enrollment student={self.student_id} term={self.term_id}>"
