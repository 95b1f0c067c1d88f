"""Canonical roster ingest contract definitions.

A single source of truth for the columns the onboarding importer understands,
their spreadsheet aliases, and how raw header text is normalized before it is
matched against them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Tuple

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_header(value: object | None) -> str:
    """Lower-case a header and strip everything that is not a letter or digit."""

    if value is None:
        return ""
    return _NON_ALNUM.sub("", str(value).strip().lower())


@dataclass(frozen=True)
class FieldSpec:
    """Metadata describing a canonical ingest field."""

    name: str
    description: str
    aliases: Tuple[str, ...] = ()

    def candidates(self) -> Tuple[str, ...]:
        """Return normalized header candidates in match-priority order."""

        ordered: list[str] = []
        for header in (self.name, *self.aliases):
            token = normalize_header(header)
            if token and token not in ordered:
                ordered.append(token)
        return tuple(ordered)


ROSTER_CANONICAL_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        name="admissionNo",
        description="School-unique admission number; natural key for students.",
        aliases=("admissionno", "admissionnumber", "admission"),
    ),
    FieldSpec(
        name="firstName",
        description="Student given name.",
        aliases=("firstname", "first"),
    ),
    FieldSpec(
        name="lastName",
        description="Student family name.",
        aliases=("lastname", "surname", "last"),
    ),
    FieldSpec(
        name="parentPhone",
        description="Guardian primary phone; normalized to +<country><number>.",
        aliases=("parentphone", "phone", "guardianphone", "primaryphone"),
    ),
    FieldSpec(
        name="parentEmail",
        description="Guardian email (trimmed, lower-cased).",
        aliases=("parentemail", "email", "guardianemail"),
    ),
    FieldSpec(
        name="parentName",
        description="Guardian full name.",
        aliases=("parentname", "guardianname"),
    ),
    FieldSpec(
        name="classGroup",
        description="Class group display name, e.g. JSS1A.",
        aliases=("classgroup", "class", "classgroupname"),
    ),
    FieldSpec(
        name="classYear",
        description="Class year name, used with classArm when classGroup is absent.",
        aliases=("classyear", "year", "grade"),
    ),
    FieldSpec(
        name="classArm",
        description="Class arm/stream name.",
        aliases=("classarm", "arm", "stream"),
    ),
    FieldSpec(
        name="term",
        description="Term name, resolved within the session when one is given.",
        aliases=("term", "semester"),
    ),
    FieldSpec(
        name="session",
        description="Academic session name.",
        aliases=("session", "academicsession"),
    ),
    FieldSpec(name="classGroupId", description="Class group ID override.", aliases=("classgroupid",)),
    FieldSpec(name="classYearId", description="Class year ID override.", aliases=("classyearid",)),
    FieldSpec(name="classArmId", description="Class arm ID override.", aliases=("classarmid",)),
    FieldSpec(name="termId", description="Term ID override.", aliases=("termid",)),
    FieldSpec(name="sessionId", description="Session ID override.", aliases=("sessionid",)),
)

ROSTER_REQUIRED_FIELDS: Tuple[str, ...] = ("admissionNo", "firstName", "lastName")


def get_roster_field_specs() -> Tuple[FieldSpec, ...]:
    return ROSTER_CANONICAL_FIELDS


def get_roster_canonical_names() -> Tuple[str, ...]:
    return tuple(spec.name for spec in ROSTER_CANONICAL_FIELDS)


def get_roster_alias_map(specs: Iterable[FieldSpec] | None = None) -> Mapping[str, Tuple[str, ...]]:
    """Return canonical field name -> normalized header candidates."""

    return {spec.name: spec.candidates() for spec in (specs or ROSTER_CANONICAL_FIELDS)}
