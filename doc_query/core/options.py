"""Store query option building.

Derives ``skip``/``limit``/``sort`` options from a Query descriptor. The
builder knows nothing about the schema; sort keys are aliased by the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from doc_query.core.enums import SortDirection
from doc_query.core.query import Query


def _to_int(value: Any) -> int | None:
    """Coerce *value* to an int, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def sort_direction(value: Any) -> int:
    """Translate a domain sort value to a storage direction.

    ``"desc"`` is descending, numeric values and numeric strings pass through
    as signed integers, anything else is ascending.
    """
    if value == "desc":
        return int(SortDirection.DESCENDING)
    number = _to_int(value)
    if number is None:
        return int(SortDirection.ASCENDING)
    return number


def build_sort(sort: Mapping[str, Any] | None) -> dict[str, int]:
    if not sort:
        return {}
    return {key: sort_direction(value) for key, value in sort.items()}


def build_query_options(query: Query | Mapping[str, Any]) -> dict[str, Any]:
    """Build store options from a Query or a raw query mapping.

    Returns:
        A dict with ``skip`` always set, ``limit`` only when a size was
        given, ``sort`` only when sorting was requested and ``with_count``
        only when counting was requested.
    """
    if isinstance(query, Mapping):
        query = Query.from_mapping(query)

    from_ = getattr(query, "from_", None)
    size = getattr(query, "size", None)
    page = getattr(query, "page", None)

    skip = _to_int(from_) or 0
    limit = _to_int(size) if size else None

    # Page-based paging only applies when no explicit offset was given
    if not skip and page and limit:
        skip = (_to_int(page) or 0) * limit

    options: dict[str, Any] = {"skip": skip}
    if limit:
        options["limit"] = limit

    sort = build_sort(getattr(query, "sort", None))
    if sort:
        options["sort"] = sort

    if getattr(query, "with_count", False):
        options["with_count"] = True

    return options
