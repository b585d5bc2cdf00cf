"""Query descriptors.

``Query`` is an immutable description of a read: the ``where`` clause,
sorting, pagination, the relations to include and whether to count the
total number of matches. ``QueryBuilder`` provides the fluent DSL.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from doc_query.mapping.schema import EntityType

# Top-level keys of a raw query mapping that are not part of the where clause
RESERVED_KEYS = frozenset(
    {
        "where",
        "sort",
        "from",
        "from_",
        "offset",
        "size",
        "limit",
        "page",
        "include_related",
        "includeRelated",
        "withRelated",
        "with_count",
        "withCount",
    }
)


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


@dataclass(frozen=True)
class RelatedOptions:
    """Per-relation options given to ``include_related``."""

    where: dict[str, Any] = field(default_factory=dict)
    sort: dict[str, Any] = field(default_factory=dict)
    from_: int | None = None
    size: int | None = None
    nested: bool = False

    @classmethod
    def coerce(cls, value: Any) -> RelatedOptions:
        """Accept ``True``/``None``, a mapping of options, or a RelatedOptions."""
        if isinstance(value, RelatedOptions):
            return value
        if value is None or value is True:
            return cls()
        if isinstance(value, Mapping):
            return cls(
                where=dict(value.get("where") or {}),
                sort=dict(value.get("sort") or {}),
                from_=_first(value, "from", "from_", "offset"),
                size=_first(value, "size", "limit"),
                nested=bool(value.get("nested", False)),
            )
        raise TypeError(f"Invalid include_related options: {value!r}")

    @property
    def paginated(self) -> bool:
        return bool(self.size)


@dataclass(frozen=True)
class Query:
    """Domain-level read descriptor."""

    where: dict[str, Any] = field(default_factory=dict)
    sort: dict[str, Any] = field(default_factory=dict)
    from_: Any = None
    size: Any = None
    page: Any = None
    include_related: dict[str, RelatedOptions] = field(default_factory=dict)
    with_count: bool = False

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> Query:
        """Build a Query from a raw mapping.

        When the mapping has no ``where`` key, every top-level key that is
        not a query option is treated as a where predicate.
        """
        if "where" in raw and raw["where"] is not None:
            where = dict(raw["where"])
        else:
            where = {key: value for key, value in raw.items() if key not in RESERVED_KEYS}

        related_raw = _first(raw, "include_related", "includeRelated", "withRelated") or {}
        if isinstance(related_raw, str):
            related_raw = [related_raw]
        if not isinstance(related_raw, Mapping):
            related_raw = {name: None for name in related_raw}

        return cls(
            where=where,
            sort=dict(raw.get("sort") or {}),
            from_=_first(raw, "from", "from_", "offset"),
            size=_first(raw, "size", "limit"),
            page=raw.get("page"),
            include_related={
                name: RelatedOptions.coerce(opts) for name, opts in related_raw.items()
            },
            with_count=bool(_first(raw, "with_count", "withCount")),
        )

    @classmethod
    def coerce(cls, value: Any, entity: EntityType | None = None) -> Query:
        """Accept a Query, a raw mapping, ``None``, or a bare primary-key value."""
        if isinstance(value, Query):
            return value
        if value is None:
            return cls()
        if isinstance(value, QueryBuilder):
            return value.build()
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        if entity is None:
            raise TypeError(f"Cannot build a query from {value!r} without an entity type")
        return cls(where={entity.primary_key: value})

    def with_where(self, where: dict[str, Any]) -> Query:
        return replace(self, where=where)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the query, omitting unset options."""
        result: dict[str, Any] = {"where": dict(self.where)}
        if self.sort:
            result["sort"] = dict(self.sort)
        if self.from_ is not None:
            result["from"] = self.from_
        if self.size is not None:
            result["size"] = self.size
        if self.page is not None:
            result["page"] = self.page
        if self.include_related:
            result["include_related"] = {
                name: {
                    key: value
                    for key, value in (
                        ("where", opts.where),
                        ("sort", opts.sort),
                        ("from", opts.from_),
                        ("size", opts.size),
                        ("nested", opts.nested),
                    )
                    if value
                }
                for name, opts in self.include_related.items()
            }
        if self.with_count:
            result["with_count"] = True
        return result


def query() -> QueryBuilder:
    """Entry point for the query DSL."""
    return QueryBuilder()


class QueryBuilder:
    """Fluent builder for Query descriptors."""

    def __init__(self) -> None:
        self._where: dict[str, Any] = {}
        self._sort: dict[str, Any] = {}
        self._from: Any = None
        self._size: Any = None
        self._page: Any = None
        self._related: dict[str, RelatedOptions] = {}
        self._with_count = False

    def where(self, predicate: Mapping[str, Any] | str, value: Any = None) -> QueryBuilder:
        """Add predicates, either as a mapping or as a single ``(path, value)``."""
        if isinstance(predicate, str):
            self._where[predicate] = value
        else:
            self._where.update(predicate)
        return self

    def sort(self, order: Mapping[str, Any] | str, direction: Any = "asc") -> QueryBuilder:
        if isinstance(order, str):
            self._sort[order] = direction
        else:
            self._sort.update(order)
        return self

    def from_(self, offset: int) -> QueryBuilder:
        self._from = offset
        return self

    def size(self, limit: int) -> QueryBuilder:
        self._size = limit
        return self

    def page(self, page: int) -> QueryBuilder:
        self._page = page
        return self

    def include_related(self, name: str, options: Any = None, **kwargs: Any) -> QueryBuilder:
        """Request a relation, with optional where/sort/from/size/nested options."""
        if kwargs:
            options = {**(options or {}), **kwargs}
        self._related[name] = RelatedOptions.coerce(options)
        return self

    def with_count(self, enabled: bool = True) -> QueryBuilder:
        self._with_count = enabled
        return self

    def build(self) -> Query:
        return Query(
            where=dict(self._where),
            sort=dict(self._sort),
            from_=self._from,
            size=self._size,
            page=self._page,
            include_related=dict(self._related),
            with_count=self._with_count,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.build().to_dict()
