"""
Conditional-create helper so concurrent or repeated imports converge on one row.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

_M = TypeVar("_M")


def find_one(session: Session, model: type[_M], lookup: Mapping[str, Any]) -> _M | None:
    """Return the oldest row matching ``lookup`` (``None`` values match NULL)."""

    statement = select(model).filter_by(**lookup).order_by(model.created_at, model.id).limit(1)
    return session.execute(statement).scalars().first()


def insert_if_absent(
    session: Session,
    model: type[_M],
    *,
    lookup: Mapping[str, Any],
    values: Mapping[str, Any] | None = None,
) -> tuple[_M, bool]:
    """
    Create ``model(**lookup, **values)`` unless a row matching ``lookup`` exists.

    The insert runs inside a savepoint; when a unique constraint reports that
    another writer got there first, the savepoint is rolled back and the
    winning row is returned instead. Returns ``(instance, created)``.
    """

    existing = find_one(session, model, lookup)
    if existing is not None:
        return existing, False

    instance = model(**lookup, **(values or {}))
    try:
        with session.begin_nested():
            session.add(instance)
            session.flush()
    except IntegrityError:
        winner = find_one(session, model, lookup)
        if winner is None:
            raise
        return winner, False
    return instance, True


__all__ = ["find_one", "insert_if_absent"]
