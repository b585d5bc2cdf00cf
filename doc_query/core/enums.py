"""Relation and sort enumerations."""

from __future__ import annotations

from enum import Enum, IntEnum


class RelationKind(Enum):
    """Supported relation kinds."""

    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"

    @property
    def is_single(self) -> bool:
        """True for relations that resolve to a single related object."""
        return self is not RelationKind.HAS_MANY


class SortDirection(IntEnum):
    """Storage-level sort directions."""

    ASCENDING = 1
    DESCENDING = -1
