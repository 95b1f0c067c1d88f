"""
Row resolution: validate a canonical roster row and map its names to IDs.

Everything here is a pure function of the row and a ``ReferenceData`` bundle,
so the rules can be exercised without a database. Every applicable error is
collected; a row is never rejected on its first problem alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, Literal, Mapping, Optional, TypeVar

from .deterministic import DEFAULT_COUNTRY_CODE, InvalidPhoneNumber, normalize_email, normalize_phone
from .reference_cache import ReferenceData, normalize_name

MISSING_REQUIRED_FIELDS = "Missing required fields"
INVALID_CLASS_GROUP_ID = "Invalid classGroupId"
INVALID_SESSION_ID = "Invalid sessionId"
INVALID_TERM_ID = "Invalid termId"
INVALID_PARENT_PHONE = "Invalid parentPhone"
CLASS_YEAR_MISMATCH = "classYear does not match classGroup"
CLASS_ARM_MISMATCH = "classArm does not match classGroup"
TERM_SESSION_MISMATCH = "term does not match session"
MISSING_CLASS_GROUP = "Missing class group (provide classGroup or classYear + classArm)"
DUPLICATE_ADMISSION = "Duplicate admission in file"

REASON_SEPARATOR = "; "

_T = TypeVar("_T")
Errors = tuple[str, ...]


@dataclass(frozen=True)
class LookupResult(Generic[_T]):
    """
    Tagged outcome of a single-match reference lookup.

    ``resolved`` carries the one matching item; ``unknown`` means zero matches
    and ``ambiguous`` two or more.
    """

    outcome: Literal["resolved", "unknown", "ambiguous"]
    item: Optional[_T] = None

    @property
    def is_resolved(self) -> bool:
        return self.outcome == "resolved"

    def error(self, label: str, value: str) -> str | None:
        if self.outcome == "unknown":
            return f"Unknown {label}: {value}"
        if self.outcome == "ambiguous":
            return f"Ambiguous {label}: {value}"
        return None


def lookup_single(candidates: Iterable[_T]) -> LookupResult[_T]:
    matches = tuple(candidates)
    if not matches:
        return LookupResult("unknown")
    if len(matches) > 1:
        return LookupResult("ambiguous")
    return LookupResult("resolved", matches[0])


def _lookup(candidates: Iterable, label: str, value: str) -> tuple[str | None, Errors]:
    result = lookup_single(candidates)
    if result.is_resolved:
        return result.item.id, ()
    return None, (result.error(label, value),)


@dataclass(frozen=True)
class RowResolution:
    """Normalized row values plus the IDs they resolved to, or the reasons they did not."""

    admission_no: str
    first_name: str
    last_name: str
    parent_name: str
    parent_phone: str | None
    parent_email: str | None
    class_group_id: str | None
    class_year_id: str | None
    class_arm_id: str | None
    session_id: str | None
    term_id: str | None
    errors: Errors = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def reason(self) -> str:
        return REASON_SEPARATOR.join(self.errors)


def _resolve_year_and_arm(row: Mapping[str, str], reference: ReferenceData) -> tuple[str | None, str | None, Errors]:
    year_id = row.get("classYearId") or None
    errors: Errors = ()
    if not year_id and row.get("classYear"):
        year_id, found = _lookup(
            reference.class_year_by_name.get(normalize_name(row["classYear"]), ()), "class year", row["classYear"]
        )
        errors += found

    arm_id = row.get("classArmId") or None
    if not arm_id and row.get("classArm"):
        arm_id, found = _lookup(
            reference.class_arm_by_name.get(normalize_name(row["classArm"]), ()), "class arm", row["classArm"]
        )
        errors += found
    return year_id, arm_id, errors


def _resolve_class_group(
    row: Mapping[str, str],
    reference: ReferenceData,
    year_id: str | None,
    arm_id: str | None,
) -> tuple[str | None, Errors]:
    if row.get("classGroupId"):
        group_id = row["classGroupId"]
        if group_id not in reference.class_group_by_id:
            return None, (INVALID_CLASS_GROUP_ID,)
        return group_id, ()

    if row.get("classGroup"):
        return _lookup(
            reference.class_group_by_name.get(normalize_name(row["classGroup"]), ()), "class group", row["classGroup"]
        )

    if year_id and arm_id:
        matches = (
            group for group in reference.class_groups if group.class_year_id == year_id and group.class_arm_id == arm_id
        )
        value = f"{row.get('classYear') or year_id}/{row.get('classArm') or arm_id}"
        return _lookup(matches, "class group for class year/arm", value)

    # An arm that was given but did not resolve is already an error
    if year_id and not (row.get("classArm") or row.get("classArmId")):
        matches = (group for group in reference.class_groups if group.class_year_id == year_id and not group.class_arm_id)
        return _lookup(matches, "class group for class year", row.get("classYear") or year_id)

    return None, ()


def _check_group_consistency(
    reference: ReferenceData, group_id: str | None, year_id: str | None, arm_id: str | None
) -> Errors:
    group = reference.class_group_by_id.get(group_id) if group_id else None
    if group is None:
        return ()
    errors: Errors = ()
    if year_id and group.class_year_id and year_id != group.class_year_id:
        errors += (CLASS_YEAR_MISMATCH,)
    if arm_id and group.class_arm_id and arm_id != group.class_arm_id:
        errors += (CLASS_ARM_MISMATCH,)
    return errors


def _resolve_session(row: Mapping[str, str], reference: ReferenceData) -> tuple[str | None, Errors]:
    if row.get("sessionId"):
        session_id = row["sessionId"]
        if session_id not in reference.session_by_id:
            return None, (INVALID_SESSION_ID,)
        return session_id, ()
    if row.get("session"):
        return _lookup(reference.session_by_name.get(normalize_name(row["session"]), ()), "session", row["session"])
    return None, ()


def _resolve_term(row: Mapping[str, str], reference: ReferenceData, session_id: str | None) -> tuple[str | None, Errors]:
    if row.get("termId"):
        term = reference.term_by_id.get(row["termId"])
        if term is None:
            return None, (INVALID_TERM_ID,)
        if session_id and term.session_id != session_id:
            return term.id, (TERM_SESSION_MISMATCH,)
        return term.id, ()

    if not row.get("term"):
        return None, ()

    named = reference.term_by_name.get(normalize_name(row["term"]), ())
    if session_id:
        return _lookup((term for term in named if term.session_id == session_id), "term", row["term"])
    return _lookup(named, "term (add session to disambiguate)", row["term"])


def resolve_row(
    row: Mapping[str, str],
    reference: ReferenceData,
    *,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
) -> RowResolution:
    """
    Validate ``row`` (canonical field -> trimmed cell) against ``reference``.

    The returned resolution is valid only when ``errors`` is empty.
    """

    admission_no = row.get("admissionNo", "")
    first_name = row.get("firstName", "")
    last_name = row.get("lastName", "")
    parent_email = normalize_email(row.get("parentEmail"))
    phone_errors: Errors = ()
    try:
        parent_phone = normalize_phone(row.get("parentPhone"), default_country_code=default_country_code)
    except InvalidPhoneNumber:
        parent_phone, phone_errors = None, (INVALID_PARENT_PHONE,)

    errors: Errors = ()
    if not (admission_no and first_name and last_name and (parent_phone or parent_email or phone_errors)):
        errors += (MISSING_REQUIRED_FIELDS,)
    errors += phone_errors

    year_id, arm_id, year_arm_errors = _resolve_year_and_arm(row, reference)
    group_id, group_errors = _resolve_class_group(row, reference, year_id, arm_id)
    class_errors = group_errors + year_arm_errors
    errors += class_errors
    errors += _check_group_consistency(reference, group_id, year_id, arm_id)
    if group_id is None and not class_errors:
        errors += (MISSING_CLASS_GROUP,)

    session_id, session_errors = _resolve_session(row, reference)
    errors += session_errors
    term_id, term_errors = _resolve_term(row, reference, session_id)
    errors += term_errors

    return RowResolution(
        admission_no=admission_no,
        first_name=first_name,
        last_name=last_name,
        parent_name=row.get("parentName", ""),
        parent_phone=parent_phone,
        parent_email=parent_email,
        class_group_id=group_id,
        class_year_id=year_id,
        class_arm_id=arm_id,
        session_id=session_id,
        term_id=term_id,
        errors=errors,
    )


__all__ = [
    "CLASS_ARM_MISMATCH",
    "CLASS_YEAR_MISMATCH",
    "DUPLICATE_ADMISSION",
    "INVALID_CLASS_GROUP_ID",
    "INVALID_PARENT_PHONE",
    "INVALID_SESSION_ID",
    "INVALID_TERM_ID",
    "LookupResult",
    "MISSING_CLASS_GROUP",
    "MISSING_REQUIRED_FIELDS",
    "REASON_SEPARATOR",
    "RowResolution",
    "TERM_SESSION_MISMATCH",
    "lookup_single",
    "resolve_row",
]
