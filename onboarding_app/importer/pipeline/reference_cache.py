"""
Per-tenant reference data used to resolve human-entered class/session/term names.

``load_reference_data`` reads the tenant's class groups, years, arms, sessions
and the terms of those sessions into an immutable ``ReferenceData`` bundle.
``ReferenceDataCache`` keeps one bundle per school for a bounded TTL so warm
worker processes skip the reload; it is safe to share between threads.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from onboarding_app.importer.metrics import record_reference_cache_lookup
from onboarding_app.models import AcademicSession, ClassArm, ClassGroup, ClassYear, Term

DEFAULT_TTL_SECONDS = 300


def normalize_name(value: object | None) -> str:
    """Trim and lower-case a reference name for case-insensitive lookups."""

    if value is None:
        return ""
    return str(value).strip().lower()


@dataclass(frozen=True)
class NamedReference:
    id: str
    name: str


@dataclass(frozen=True)
class ClassGroupReference:
    id: str
    name: str
    class_year_id: str
    class_arm_id: str | None


@dataclass(frozen=True)
class TermReference:
    id: str
    name: str
    session_id: str


_T = TypeVar("_T", NamedReference, ClassGroupReference, TermReference)


def _index_by_name(items: Iterable[_T]) -> Mapping[str, tuple[_T, ...]]:
    grouped: dict[str, list[_T]] = {}
    for item in items:
        grouped.setdefault(normalize_name(item.name), []).append(item)
    return MappingProxyType({key: tuple(values) for key, values in grouped.items()})


def _index_by_id(items: Iterable[_T]) -> Mapping[str, _T]:
    return MappingProxyType({item.id: item for item in items})


@dataclass(frozen=True)
class ReferenceData:
    """Immutable snapshot of one school's reference tables plus lookup maps."""

    school_id: str
    class_groups: tuple[ClassGroupReference, ...]
    class_years: tuple[NamedReference, ...]
    class_arms: tuple[NamedReference, ...]
    sessions: tuple[NamedReference, ...]
    terms: tuple[TermReference, ...]
    class_group_by_name: Mapping[str, tuple[ClassGroupReference, ...]]
    class_year_by_name: Mapping[str, tuple[NamedReference, ...]]
    class_arm_by_name: Mapping[str, tuple[NamedReference, ...]]
    session_by_name: Mapping[str, tuple[NamedReference, ...]]
    term_by_name: Mapping[str, tuple[TermReference, ...]]
    class_group_by_id: Mapping[str, ClassGroupReference]
    class_year_by_id: Mapping[str, NamedReference]
    class_arm_by_id: Mapping[str, NamedReference]
    session_by_id: Mapping[str, NamedReference]
    term_by_id: Mapping[str, TermReference]

    @classmethod
    def build(
        cls,
        school_id: str,
        *,
        class_groups: Iterable[ClassGroupReference] = (),
        class_years: Iterable[NamedReference] = (),
        class_arms: Iterable[NamedReference] = (),
        sessions: Iterable[NamedReference] = (),
        terms: Iterable[TermReference] = (),
    ) -> "ReferenceData":
        groups = tuple(class_groups)
        years = tuple(class_years)
        arms = tuple(class_arms)
        session_items = tuple(sessions)
        term_items = tuple(terms)
        return cls(
            school_id=school_id,
            class_groups=groups,
            class_years=years,
            class_arms=arms,
            sessions=session_items,
            terms=term_items,
            class_group_by_name=_index_by_name(groups),
            class_year_by_name=_index_by_name(years),
            class_arm_by_name=_index_by_name(arms),
            session_by_name=_index_by_name(session_items),
            term_by_name=_index_by_name(term_items),
            class_group_by_id=_index_by_id(groups),
            class_year_by_id=_index_by_id(years),
            class_arm_by_id=_index_by_id(arms),
            session_by_id=_index_by_id(session_items),
            term_by_id=_index_by_id(term_items),
        )


def load_reference_data(session: Session, school_id: str) -> ReferenceData:
    """Read every reference row for ``school_id`` in one pass."""

    groups = session.execute(select(ClassGroup).where(ClassGroup.school_id == school_id)).scalars().all()
    years = session.execute(select(ClassYear).where(ClassYear.school_id == school_id)).scalars().all()
    arms = session.execute(select(ClassArm).where(ClassArm.school_id == school_id)).scalars().all()
    sessions = session.execute(select(AcademicSession).where(AcademicSession.school_id == school_id)).scalars().all()

    session_ids = [item.id for item in sessions]
    terms = []
    if session_ids:
        terms = session.execute(select(Term).where(Term.session_id.in_(session_ids))).scalars().all()

    return ReferenceData.build(
        school_id,
        class_groups=(
            ClassGroupReference(
                id=group.id,
                name=group.display_name,
                class_year_id=group.class_year_id,
                class_arm_id=group.class_arm_id,
            )
            for group in groups
        ),
        class_years=(NamedReference(id=year.id, name=year.name) for year in years),
        class_arms=(NamedReference(id=arm.id, name=arm.name) for arm in arms),
        sessions=(NamedReference(id=item.id, name=item.name) for item in sessions),
        terms=(TermReference(id=term.id, name=term.name, session_id=term.session_id) for term in terms),
    )


ReferenceLoader = Callable[[str], ReferenceData]


class ReferenceDataCache:
    """
    School-keyed cache of ``ReferenceData`` bundles with a bounded TTL.

    ``loader`` is called with a school id on a miss. A TTL of zero disables
    caching. Bundles are immutable, so readers never need the lock.
    """

    def __init__(
        self,
        loader: ReferenceLoader,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, ReferenceData]] = {}
        self._lock = threading.Lock()

    def get(self, school_id: str) -> ReferenceData:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(school_id)
            if entry is not None and now < entry[0]:
                record_reference_cache_lookup(hit=True)
                return entry[1]

        record_reference_cache_lookup(hit=False)
        data = self._loader(school_id)
        if self.ttl_seconds > 0:
            with self._lock:
                self._entries[school_id] = (self._clock() + self.ttl_seconds, data)
        return data

    def invalidate(self, school_id: str) -> bool:
        """Drop one school's bundle. Returns True when an entry was removed."""

        with self._lock:
            return self._entries.pop(school_id, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __contains__(self, school_id: object) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(school_id)  # type: ignore[arg-type]
            return entry is not None and now < entry[0]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "ClassGroupReference",
    "DEFAULT_TTL_SECONDS",
    "NamedReference",
    "ReferenceData",
    "ReferenceDataCache",
    "ReferenceLoader",
    "TermReference",
    "load_reference_data",
    "normalize_name",
]
