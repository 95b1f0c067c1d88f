from __future__ import annotations

from dataclasses import dataclass
from itertools import count

import pytest

from onboarding_app.importer import get_object_storage
from onboarding_app.importer.tasks import execute_onboarding_import
from onboarding_app.importer.triggers import TriggerPayload
from onboarding_app.models import (
    AcademicSession,
    ClassArm,
    ClassGroup,
    ClassYear,
    ImportJob,
    ImportJobStatus,
    Term,
    db,
)

SCHOOL_ID = "school-0001"
UPLOAD_BUCKET = "roster-uploads"

ROSTER_HEADER = "admissionNo,firstName,lastName,parentPhone,parentEmail,parentName,classGroup,session,term"


@dataclass
class SchoolReference:
    school_id: str
    jss1: ClassYear
    jss2: ClassYear
    arm_a: ClassArm
    arm_b: ClassArm
    jss1a: ClassGroup
    jss1b: ClassGroup
    jss2_whole: ClassGroup
    session: AcademicSession
    next_session: AcademicSession
    first_term: Term
    second_term: Term
    next_first_term: Term


@pytest.fixture
def school_id() -> str:
    return SCHOOL_ID


@pytest.fixture
def reference(school_id) -> SchoolReference:
    """
    JSS1 with arms A and B, JSS2 taught as one group, and two sessions that
    both have a "First Term".
    """
    jss1 = ClassYear(school_id=school_id, name="JSS1", sort_order=1)
    jss2 = ClassYear(school_id=school_id, name="JSS2", sort_order=2)
    arm_a = ClassArm(school_id=school_id, name="A")
    arm_b = ClassArm(school_id=school_id, name="B")
    db.session.add_all([jss1, jss2, arm_a, arm_b])
    db.session.flush()

    jss1a = ClassGroup(school_id=school_id, display_name="JSS1A", class_year_id=jss1.id, class_arm_id=arm_a.id)
    jss1b = ClassGroup(school_id=school_id, display_name="JSS1B", class_year_id=jss1.id, class_arm_id=arm_b.id)
    jss2_whole = ClassGroup(school_id=school_id, display_name="JSS2", class_year_id=jss2.id, class_arm_id=None)
    session = AcademicSession(school_id=school_id, name="2024/2025")
    next_session = AcademicSession(school_id=school_id, name="2025/2026")
    db.session.add_all([jss1a, jss1b, jss2_whole, session, next_session])
    db.session.flush()

    first_term = Term(session_id=session.id, name="First Term")
    second_term = Term(session_id=session.id, name="Second Term")
    next_first_term = Term(session_id=next_session.id, name="First Term")
    db.session.add_all([first_term, second_term, next_first_term])
    db.session.commit()

    return SchoolReference(
        school_id=school_id,
        jss1=jss1,
        jss2=jss2,
        arm_a=arm_a,
        arm_b=arm_b,
        jss1a=jss1a,
        jss1b=jss1b,
        jss2_whole=jss2_whole,
        session=session,
        next_session=next_session,
        first_term=first_term,
        second_term=second_term,
        next_first_term=next_first_term,
    )


@pytest.fixture
def storage(app):
    return get_object_storage(app)


@pytest.fixture
def upload_roster(storage, school_id):
    """Write CSV text into object storage and return its key."""
    sequence = count(1)

    def _upload(text: str | bytes, *, key: str | None = None) -> str:
        object_key = key or f"{school_id}/roster-{next(sequence)}.csv"
        body = text.encode("utf-8") if isinstance(text, str) else text
        storage.put_bytes(UPLOAD_BUCKET, object_key, body)
        return object_key

    return _upload


@pytest.fixture
def import_job_factory(school_id):
    def _factory(*, school: str | None = None, status: ImportJobStatus = ImportJobStatus.PROCESSING) -> ImportJob:
        job = ImportJob(school_id=school or school_id, status=status)
        db.session.add(job)
        db.session.commit()
        return db.session.get(ImportJob, job.id)

    return _factory


@pytest.fixture
def run_import(app, school_id, upload_roster, import_job_factory):
    """
    Upload ``text``, create a job unless ``job`` is given, and run the import inline.

    Returns ``(result, job)`` with ``job`` refreshed from the database.
    """

    def _run(text: str, *, job: ImportJob | None = None, track_status: bool = True, **payload_overrides):
        key = upload_roster(text)
        if track_status and job is None:
            job = import_job_factory()
        payload = TriggerPayload(
            bucket=UPLOAD_BUCKET,
            key=key,
            school_id=school_id,
            status_table=ImportJob.__tablename__ if track_status else None,
            status_id=job.id if track_status else None,
            **payload_overrides,
        )
        result = execute_onboarding_import(app, payload)
        if job is not None:
            db.session.expire_all()
            job = db.session.get(ImportJob, job.id)
        return result, job

    return _run


@pytest.fixture
def roster_csv():
    def _build(*rows: str, header: str = ROSTER_HEADER) -> str:
        return "\n".join((header, *rows)) + "\n"

    return _build
