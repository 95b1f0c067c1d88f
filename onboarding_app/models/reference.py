# onboarding_app/models/reference.py
"""
Tenant reference data: class years, arms, groups, academic sessions and terms.

The importer only reads these tables; they are maintained by the admin portal.
"""

from sqlalchemy import Index

from .base import BaseModel, db, new_id


class ClassYear(BaseModel):
    """A year/grade level such as ``JSS1``."""

    __tablename__ = "class_years"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    sort_order = db.Column(db.Integer, nullable=True)

    def __repr__(self):
        return f"<ClassYear {self.name}>"


class ClassArm(BaseModel):
    """A parallel stream within a year, e.g. ``A`` or ``Gold``."""

    __tablename__ = "class_arms"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)

    def __repr__(self):
        return f"<ClassArm {self.name}>"


class ClassGroup(BaseModel):
    """A concrete class students are enrolled into (year plus optional arm)."""

    __tablename__ = "class_groups"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(64), nullable=False, index=True)
    display_name = db.Column(db.String(150), nullable=False)
    class_year_id = db.Column(db.String(36), db.ForeignKey("class_years.id"), nullable=False)
    class_arm_id = db.Column(db.String(36), db.ForeignKey("class_arms.id"), nullable=True)

    class_year = db.relationship("ClassYear")
    class_arm = db.relationship("ClassArm")

    __table_args__ = (Index("idx_class_groups_school_year_arm", "school_id", "class_year_id", "class_arm_id"),)

    def __repr__(self):
        return f"<ClassGroup {self.display_name}>"


class AcademicSession(BaseModel):
    """An academic year, e.g. ``2024/2025``."""

    __tablename__ = "academic_sessions"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)

    terms = db.relationship("Term", back_populates="session", order_by="Term.name")

    def __repr__(self):
        return f"<AcademicSession {self.name}>"


class Term(BaseModel):
    """A term inside an academic session. Not tenant-keyed directly."""

    __tablename__ = "terms"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    session_id = db.Column(db.String(36), db.ForeignKey("academic_sessions.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)

    session = db.relationship("AcademicSession", back_populates="terms")

    def __repr__(self):
        return f"<Term {self.name}>"
