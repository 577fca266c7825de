"""Generic filtering and search helpers for list endpoints."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import Select, and_, or_
from sqlalchemy.orm import InstrumentedAttribute


def apply_filters(
    query: Select,
    model: Any,
    filters: dict[str, Any],
) -> Select:
    """
    Apply a dict of filter parameters to a SQLAlchemy ``Select``.

    Key suffixes determine the operator:

    ============  ==================
    Suffix        Operator
    ============  ==================
    (none)        ``==``
    ``__gte``     ``>=``
    ``__lte``     ``<=``
    ``__in``      ``IN (…)``
    ============  ==================

    ``None`` values are skipped. Unknown column names raise ``AttributeError``.
    """
    conditions: list = []

    for key, value in filters.items():
        if value is None:
            continue

        name, _, op = key.partition("__")
        col = _get_column(model, name)

        if op == "gte":
            conditions.append(col >= value)
        elif op == "lte":
            conditions.append(col <= value)
        elif op == "in":
            conditions.append(col.in_(value))
        elif op == "":
            conditions.append(col == value)
        else:
            raise ValueError(f"Unsupported filter operator '{op}' in '{key}'")

    if conditions:
        query = query.where(and_(*conditions))
    return query


def apply_search(
    query: Select,
    model: Any,
    search: Optional[str],
    columns: Sequence[str],
) -> Select:
    """Case-insensitive substring match across *columns* (OR-ed)."""
    if not search or not search.strip():
        return query

    pattern = f"%{search.strip()}%"
    return query.where(
        or_(*(_get_column(model, name).ilike(pattern) for name in columns))
    )


def _get_column(model: Any, name: str) -> InstrumentedAttribute:
    col = getattr(model, name, None)
    if col is None:
        raise AttributeError(f"{model.__name__} has no column '{name}'")
    return col
