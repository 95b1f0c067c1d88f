from __future__ import annotations

import csv
import io
import json

import pytest

from onboarding_app.importer.pipeline import ImportJobNotFound, UnknownStatusTable
from onboarding_app.importer.pipeline.report import AUDIT_ACTION_IMPORT_COMPLETED, ERROR_REPORT_HEADER
from onboarding_app.importer.storage import ObjectNotFound
from onboarding_app.importer.tasks import execute_onboarding_import
from onboarding_app.importer.triggers import TriggerPayload
from onboarding_app.models import (
    AuditEvent,
    ClassGroup,
    Enrollment,
    EnrollmentStatus,
    Guardian,
    GuardianRelationship,
    ImportJobStatus,
    RosterStatus,
    Student,
    StudentGuardianLink,
    db,
)

UPLOAD_BUCKET = "roster-uploads"


def _read_report(storage, key: str) -> list[list[str]]:
    text = storage.get_bytes(UPLOAD_BUCKET, key).decode("utf-8")
    return list(csv.reader(io.StringIO(text)))


def test_single_row_import_creates_roster(reference, run_import, roster_csv):
    result, job = run_import(roster_csv("ADM001,Ada,Obi,08031234567,,Mrs Obi,JSS1A,2024/2025,First Term"))

    assert result.summary.as_dict() == {"processed": 1, "created": 1, "updated": 0, "skipped": 0, "errors": 0}
    assert result.status is ImportJobStatus.COMPLETED
    assert result.error_report_key is None

    assert job.status is ImportJobStatus.COMPLETED
    assert job.processed_lines == 1
    assert job.created == 1
    assert job.errors == 0
    assert job.error_report_key is None
    assert job.processed_at is not None

    student = Student.query.filter_by(school_id=reference.school_id, admission_no="ADM001").one()
    assert (student.first_name, student.last_name) == ("Ada", "Obi")
    assert student.status is RosterStatus.ACTIVE

    guardian = Guardian.query.one()
    assert guardian.primary_phone == "+2348031234567"
    assert guardian.full_name == "Mrs Obi"
    assert guardian.email is None

    link = StudentGuardianLink.query.one()
    assert link.student_id == student.id
    assert link.guardian_id == guardian.id
    assert link.relationship_type is GuardianRelationship.GUARDIAN
    assert link.is_primary is True

    enrollment = Enrollment.query.one()
    assert enrollment.student_id == student.id
    assert enrollment.class_group_id == reference.jss1a.id
    assert enrollment.session_id == reference.session.id
    assert enrollment.term_id == reference.first_term.id
    assert enrollment.status is EnrollmentStatus.ENROLLED


def test_completion_appends_one_audit_event(reference, run_import, roster_csv):
    _, job = run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term"))

    events = AuditEvent.query.filter_by(entity_id=job.id).all()
    assert len(events) == 1
    event = events[0]
    assert event.action == AUDIT_ACTION_IMPORT_COMPLETED
    assert event.entity_type == "ImportJob"
    assert event.school_id == reference.school_id
    assert event.after_json == {
        "processed": 1,
        "created": 1,
        "updated": 0,
        "skipped": 0,
        "errors": 0,
        "status": "COMPLETED",
        "errorReportKey": None,
    }


def test_row_missing_first_name_is_reported(reference, run_import, roster_csv, storage, school_id):
    text = roster_csv(
        "ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term",
        "ADM002,,Eze,08030000001,,,JSS1A,2024/2025,First Term",
    )
    result, job = run_import(text)

    assert result.summary.as_dict() == {"processed": 2, "created": 1, "updated": 0, "skipped": 0, "errors": 1}
    assert job.status is ImportJobStatus.COMPLETED_WITH_ERRORS
    assert job.errors == 1

    expected_key = f"{school_id}/roster-1.csv.errors.{job.id}.csv"
    assert result.error_report_key == expected_key
    assert job.error_report_key == expected_key
    assert Student.query.filter_by(admission_no="ADM002").count() == 0

    text_lines = storage.get_bytes(UPLOAD_BUCKET, expected_key).decode("utf-8").splitlines()
    assert text_lines[0] == ERROR_REPORT_HEADER

    rows = _read_report(storage, expected_key)
    assert len(rows) == 2
    row_number, reason, raw_row = rows[1]
    assert row_number == "3"
    assert reason == "Missing required fields"
    embedded = json.loads(raw_row)
    assert embedded["admissionNo"] == "ADM002"
    assert embedded["firstName"] == ""
    assert embedded["classGroup"] == "JSS1A"

    event = AuditEvent.query.filter_by(entity_id=job.id).one()
    assert event.after_json["errors"] == 1
    assert event.after_json["status"] == "COMPLETED_WITH_ERRORS"
    assert event.after_json["errorReportKey"] == expected_key


def test_caller_supplied_error_report_key_is_used(reference, run_import, roster_csv, storage):
    result, job = run_import(
        roster_csv("ADM009,,Eze,08030000001,,,JSS1A,,"),
        error_report_key="reports/custom-errors.csv",
    )

    assert result.error_report_key == "reports/custom-errors.csv"
    assert job.error_report_key == "reports/custom-errors.csv"
    assert storage.exists(UPLOAD_BUCKET, "reports/custom-errors.csv")


def test_reimporting_same_file_is_idempotent(reference, run_import, roster_csv):
    text = roster_csv(
        "ADM001,Ada,Obi,08031234567,,Mrs Obi,JSS1A,2024/2025,First Term",
        "ADM002,Bola,Obi,0803 123 4567,,Mrs Obi,JSS1B,2024/2025,First Term",
    )
    first, _ = run_import(text)
    second, job = run_import(text)

    assert first.summary.created == 2
    assert second.summary.as_dict() == {"processed": 2, "created": 0, "updated": 0, "skipped": 2, "errors": 0}
    assert job.status is ImportJobStatus.COMPLETED

    assert Student.query.count() == 2
    assert Guardian.query.count() == 1
    assert StudentGuardianLink.query.count() == 2
    assert Enrollment.query.count() == 2


def test_changed_student_name_counts_as_update(reference, run_import, roster_csv):
    run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term"))
    result, _ = run_import(roster_csv("ADM001,Ada,Obi-Eze,08031234567,,,JSS1A,2024/2025,First Term"))

    assert result.summary.as_dict() == {"processed": 1, "created": 0, "updated": 1, "skipped": 0, "errors": 0}
    student = Student.query.one()
    assert student.last_name == "Obi-Eze"


def test_guardian_matched_by_phone_gets_name_and_email(reference, run_import, roster_csv):
    run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term"))
    result, _ = run_import(
        roster_csv("ADM001,Ada,Obi,+234 803 123 4567,Mother@Example.com,Mrs Obi,JSS1A,2024/2025,First Term")
    )

    assert result.summary.updated == 1
    guardian = Guardian.query.one()
    assert guardian.full_name == "Mrs Obi"
    assert guardian.email == "mother@example.com"


def test_guardians_converge_on_normalized_phone(reference, run_import, roster_csv):
    text = roster_csv(
        "ADM001,Ada,Obi,08031234567,,Mrs Obi,JSS1A,2024/2025,First Term",
        'ADM002,Bola,Obi,"+234 (803) 123-4567",,,JSS1A,2024/2025,First Term',
        "ADM003,Chi,Obi,8031234567,,,JSS1A,2024/2025,First Term",
    )
    result, _ = run_import(text)

    assert result.summary.created == 3
    guardian = Guardian.query.one()
    assert guardian.primary_phone == "+2348031234567"
    assert StudentGuardianLink.query.filter_by(guardian_id=guardian.id).count() == 3


def test_guardians_converge_on_email_without_phone(reference, run_import, roster_csv):
    text = roster_csv(
        "ADM001,Ada,Obi,, Parent@Example.com ,Mr Obi,JSS1A,2024/2025,First Term",
        "ADM002,Bola,Obi,,parent@example.com,,JSS1A,2024/2025,First Term",
    )
    run_import(text)
    run_import(text)

    guardian = Guardian.query.one()
    assert guardian.email == "parent@example.com"
    assert guardian.primary_phone is None
    assert guardian.full_name == "Mr Obi"
    assert StudentGuardianLink.query.count() == 2


def test_guardian_with_new_phone_converges_on_email(reference, run_import, roster_csv):
    text = roster_csv(
        "ADM001,Ada,Obi,08031234567,parent@example.com,,JSS1A,2024/2025,First Term",
        "ADM002,Bola,Obi,+2348031234567,,,JSS1A,2024/2025,First Term",
        "ADM003,Chi,Obi,08039999999, PARENT@example.com ,,JSS1A,2024/2025,First Term",
    )
    result, _ = run_import(text)

    assert result.summary.created == 3
    rerun, _ = run_import(text)

    assert rerun.summary.skipped == 3
    guardian = Guardian.query.one()
    assert guardian.email == "parent@example.com"
    assert StudentGuardianLink.query.filter_by(guardian_id=guardian.id).count() == 3


def test_guardian_without_name_defaults_to_parent(reference, run_import, roster_csv):
    run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term"))

    assert Guardian.query.one().full_name == "Parent"


def test_duplicate_admission_in_file_is_rejected(reference, run_import, roster_csv, storage):
    text = roster_csv(
        "ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term",
        "ADM001,Ada,Okafor,08030000002,,,JSS1B,2024/2025,First Term",
        "ADM001,,Okafor,08030000002,,,JSS1B,2024/2025,First Term",
    )
    result, job = run_import(text)

    assert result.summary.as_dict() == {"processed": 3, "created": 1, "updated": 0, "skipped": 0, "errors": 2}
    assert Student.query.one().last_name == "Obi"

    reasons = [row[1] for row in _read_report(storage, job.error_report_key)[1:]]
    assert reasons == [
        "Duplicate admission in file",
        "Missing required fields",
    ]


def test_rejected_row_does_not_claim_its_admission_number(reference, run_import, roster_csv, storage):
    text = roster_csv(
        "ADM001,,Obi,08031234567,,,JSS1A,2024/2025,First Term",
        "ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term",
    )
    result, job = run_import(text)

    assert result.summary.as_dict() == {"processed": 2, "created": 1, "updated": 0, "skipped": 0, "errors": 1}
    assert Student.query.one().first_name == "Ada"
    reasons = [row[1] for row in _read_report(storage, job.error_report_key)[1:]]
    assert reasons == ["Missing required fields"]


def test_unknown_and_ambiguous_lookups_are_reported(reference, run_import, roster_csv, storage):
    text = roster_csv(
        "ADM001,Ada,Obi,08031234567,,,JSS9Z,2024/2025,First Term",
        "ADM002,Bola,Obi,08031234567,,,JSS1A,,First Term",
        "ADM003,Chi,Obi,08031234567,,,JSS1A,2030/2031,",
    )
    _, job = run_import(text)

    reasons = [row[1] for row in _read_report(storage, job.error_report_key)[1:]]
    assert reasons == [
        "Unknown class group: JSS9Z",
        "Ambiguous term (add session to disambiguate): First Term",
        "Unknown session: 2030/2031",
    ]
    assert job.errors == 3
    assert Student.query.count() == 0


def test_class_year_and_arm_columns_resolve_group_with_aliases(reference, run_import):
    text = (
        "Admission Number,First Name,Surname,Phone,Class Year,Arm,Session,Term\n"
        "ADM010,Dayo,Ade,07011112222,jss1, b ,2024/2025,second term\n"
    )
    result, _ = run_import(text)

    assert result.summary.created == 1
    enrollment = Enrollment.query.one()
    assert enrollment.class_group_id == reference.jss1b.id
    assert enrollment.term_id == reference.second_term.id


def test_enrollment_is_updated_in_place_for_same_term(reference, run_import, roster_csv):
    run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term"))
    result, _ = run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1B,2024/2025,First Term"))

    assert result.summary.errors == 0
    enrollment = Enrollment.query.one()
    assert enrollment.class_group_id == reference.jss1b.id


def test_new_term_adds_a_second_enrollment(reference, run_import, roster_csv):
    run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term"))
    run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,Second Term"))

    term_ids = {enrollment.term_id for enrollment in Enrollment.query.all()}
    assert term_ids == {reference.first_term.id, reference.second_term.id}


def test_term_id_without_session_keeps_enrollment_session(reference, run_import, roster_csv):
    run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term"))
    text = (
        "admissionNo,firstName,lastName,parentPhone,classGroup,termId\n"
        f"ADM001,Ada,Obi,08031234567,JSS1B,{reference.first_term.id}\n"
    )
    result, _ = run_import(text)

    assert result.summary.errors == 0
    enrollment = Enrollment.query.one()
    assert enrollment.class_group_id == reference.jss1b.id
    assert enrollment.session_id == reference.session.id


def test_minimal_header_without_session_or_term(reference, run_import):
    text = "Admission No,First Name,Last Name,Parent Phone,Class\nADM001,Ada,Obi,08031234567,JSS1A\n"
    result, job = run_import(text)

    assert result.summary.as_dict() == {"processed": 1, "created": 1, "updated": 0, "skipped": 0, "errors": 0}
    assert job.status is ImportJobStatus.COMPLETED
    enrollment = Enrollment.query.one()
    assert enrollment.class_group_id == reference.jss1a.id
    assert enrollment.term_id is None
    assert enrollment.session_id is None


def test_overlong_phone_rejects_only_its_row(reference, run_import, roster_csv, storage):
    text = roster_csv(
        "ADM001,Ada,Obi,1e40,,,JSS1A,2024/2025,First Term",
        "ADM002,Bola,Obi,08031234567,,,JSS1A,2024/2025,First Term",
    )
    result, job = run_import(text)

    assert result.summary.as_dict() == {"processed": 2, "created": 1, "updated": 0, "skipped": 0, "errors": 1}
    assert job.status is ImportJobStatus.COMPLETED_WITH_ERRORS
    assert Student.query.one().admission_no == "ADM002"
    reasons = [row[1] for row in _read_report(storage, job.error_report_key)[1:]]
    assert reasons == ["Invalid parentPhone"]


def test_bom_crlf_and_blank_rows_are_tolerated(reference, run_import, storage):
    text = (
        "\ufeffadmissionNo,firstName,lastName,parentPhone,classGroup\r\n"
        "\r\n"
        "ADM001,Ada,Obi,08031234567,JSS1A\r\n"
        ",,,,\r\n"
        "ADM002,,Obi,08031234567,JSS1A"
    )
    result, job = run_import(text)

    assert result.summary.processed == 2
    assert result.summary.created == 1
    rows = _read_report(storage, job.error_report_key)
    assert rows[1][0] == "3"


def test_import_without_status_record_skips_finalization(reference, run_import, roster_csv, storage, school_id):
    result, job = run_import(
        roster_csv(
            "ADM001,Ada,Obi,08031234567,,,JSS1A,2024/2025,First Term",
            "ADM002,,Obi,08031234567,,,JSS1A,2024/2025,First Term",
        ),
        track_status=False,
    )

    assert job is None
    assert result.job_id is None
    assert result.error_report_key is None
    assert result.summary.created == 1
    assert result.summary.errors == 1
    assert AuditEvent.query.count() == 0
    assert not list((storage.root / UPLOAD_BUCKET / school_id).glob("*.errors.*"))


def test_missing_upload_leaves_job_processing(app, reference, import_job_factory, school_id):
    job = import_job_factory()
    payload = TriggerPayload(
        bucket=UPLOAD_BUCKET,
        key=f"{school_id}/never-uploaded.csv",
        school_id=school_id,
        status_table="import_jobs",
        status_id=job.id,
    )

    with pytest.raises(ObjectNotFound):
        execute_onboarding_import(app, payload)

    db.session.expire_all()
    assert job.status is ImportJobStatus.PROCESSING
    assert job.processed_at is None
    assert job.source_key == f"{school_id}/never-uploaded.csv"
    assert AuditEvent.query.count() == 0


def test_unknown_job_raises(app, reference, upload_roster, import_job_factory, roster_csv, school_id):
    key = upload_roster(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,,"))
    other_school_job = import_job_factory(school="school-9999")

    for status_id in ("does-not-exist", other_school_job.id):
        payload = TriggerPayload(
            bucket=UPLOAD_BUCKET, key=key, school_id=school_id, status_table="import_jobs", status_id=status_id
        )
        with pytest.raises(ImportJobNotFound):
            execute_onboarding_import(app, payload)

    assert Student.query.count() == 0


def test_unknown_status_table_raises(app, reference, upload_roster, import_job_factory, roster_csv, school_id):
    key = upload_roster(roster_csv("ADM001,Ada,Obi,08031234567,,,JSS1A,,"))
    job = import_job_factory()
    payload = TriggerPayload(bucket=UPLOAD_BUCKET, key=key, school_id=school_id, status_table="students", status_id=job.id)

    with pytest.raises(UnknownStatusTable) as excinfo:
        execute_onboarding_import(app, payload)

    assert excinfo.value.table == "students"
    assert excinfo.value.known == ("import_jobs",)
    assert Student.query.count() == 0


def test_rows_are_scoped_to_the_school(reference, run_import, roster_csv, import_job_factory):
    """Reference names from another school never resolve."""
    foreign = ClassGroup(
        school_id="school-9999",
        display_name="SS3Gold",
        class_year_id=reference.jss1.id,
        class_arm_id=None,
    )
    db.session.add(foreign)
    db.session.commit()

    result, _ = run_import(roster_csv("ADM001,Ada,Obi,08031234567,,,SS3Gold,,"))

    assert result.summary.errors == 1
    assert Student.query.count() == 0
