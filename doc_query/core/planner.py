"""Relation-resolving query planner.

The store has no joins, so a read whose ``where`` clause reaches through
relations, or that asks for related entities, is resolved with a sequence of
queries:

1. the ``where`` clause is split into plain predicates and relation
   predicates (``"author.name"``, ``"author.company.city"``, ...);
2. relation predicates are resolved deepest first: each lookup against a
   related collection yields a candidate id set that becomes an ``$in``
   filter on the next query up;
3. the primary query runs with the narrowed predicate;
4. every relation named in ``include_related`` is fetched with one batched
   query and stitched onto the primary records by join key, optionally
   resolving the related entities' own relations (``nested``).

Each step depends on the previous one, so the steps run strictly in order
and the first error aborts the whole read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from bson import ObjectId

from doc_query.core.connection import ResultSet, StoreGateway
from doc_query.core.enums import RelationKind
from doc_query.core.identifier import encode_id
from doc_query.core.options import build_query_options
from doc_query.core.query import Query, RelatedOptions
from doc_query.mapping.schema import Attribute, EntityType, Relation
from doc_query.mapping.transcoder import field_path, from_storage, is_operator, to_storage

logger = logging.getLogger(__name__)

GatewayResolver = Callable[[EntityType], StoreGateway]


def partition_predicates(
    entity: EntityType,
    where: Mapping[str, Any],
) -> tuple[dict[str, Any], dict[str, dict[str, Any]]]:
    """Split a domain where clause into plain and relation predicates.

    Returns:
        ``(plain, related)`` where *related* maps a relation name to the
        predicate to evaluate against the relation's target, keyed by the
        remainder of each dotted path.
    """
    plain: dict[str, Any] = {}
    related: dict[str, dict[str, Any]] = {}

    for key, value in where.items():
        if is_operator(key):
            plain[key] = value
            continue

        head, _, rest = key.partition(".")
        relation = entity.relation(head)
        if relation is None:
            plain[key] = value
            continue

        sub_where = related.setdefault(head, {})
        if rest:
            sub_where[rest] = value
        elif isinstance(value, Mapping) and not any(is_operator(k) for k in value):
            sub_where.update(value)
        else:
            # A bare value compares against the related primary key
            sub_where[relation.target.primary_key] = value

    return plain, related


def merge_in_filters(predicate: dict[str, Any], filters: Mapping[str, list[Any]]) -> dict[str, Any]:
    """Fold candidate id sets into ``$in`` filters on *predicate*.

    Id sets for a key that already carries an ``$in`` are unioned with it
    rather than replacing it.
    """
    merged = dict(predicate)
    for key, values in filters.items():
        existing = merged.get(key)
        if key not in merged:
            merged[key] = {"$in": list(values)}
        elif isinstance(existing, Mapping) and all(is_operator(k) for k in existing):
            condition = dict(existing)
            condition["$in"] = unique(list(condition.get("$in", [])) + list(values))
            merged[key] = condition
        else:
            # Equality on the same key: both conditions must hold
            merged.setdefault("$and", [])
            merged["$and"] = list(merged["$and"]) + [{key: {"$in": list(values)}}]
    return merged


def unique(values: Iterable[Any]) -> list[Any]:
    """Deduplicate preserving order. Works for unhashable values too."""
    seen: set[Any] = set()
    result: list[Any] = []
    for value in values:
        try:
            if value in seen:
                continue
            seen.add(value)
        except TypeError:
            if value in result:
                continue
        result.append(value)
    return result


def _flatten(values: Iterable[Any]) -> list[Any]:
    result: list[Any] = []
    for value in values:
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            result.extend(v for v in value if v is not None)
        else:
            result.append(value)
    return result


def join_key(value: Any) -> Any:
    """Normalise a join value so stored and decoded identifiers compare equal."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return tuple(join_key(v) for v in value)
    return value


def storage_options(entity: EntityType, options: dict[str, Any]) -> dict[str, Any]:
    """Alias the sort keys of built query options to storage field names."""
    if options.get("sort"):
        options = dict(options)
        options["sort"] = {
            field_path(entity, key): value for key, value in options["sort"].items()
        }
    return options


class QueryPlanner:
    """Resolves reads for one entity type, following declared relations.

    Args:
        entity: The primary entity type.
        gateway_for: Returns the store gateway bound to an entity type.
    """

    def __init__(self, entity: EntityType, gateway_for: GatewayResolver) -> None:
        self.entity = entity
        self._gateway_for = gateway_for

    async def find(self, query: Query) -> ResultSet:
        """Resolve a multi-document read. Returns decoded records."""
        cache: dict[str, list[dict[str, Any]]] = {}
        predicate = await self.build_predicate(
            self.entity, query.where, cache=cache, keep=set(query.include_related)
        )
        options = storage_options(self.entity, build_query_options(query))

        logger.debug("primary find %s %r", self.entity.name, predicate)
        documents = await self._gateway_for(self.entity).find(predicate, options)
        records = ResultSet(
            [from_storage(doc, self.entity) for doc in documents], count=documents.count
        )

        await self.include_related(self.entity, records, query.include_related, cache)
        return records

    async def find_one(self, query: Query) -> dict[str, Any] | None:
        """Resolve a single-document read. Returns ``None`` when nothing matches."""
        cache: dict[str, list[dict[str, Any]]] = {}
        predicate = await self.build_predicate(
            self.entity, query.where, cache=cache, keep=set(query.include_related)
        )
        options = storage_options(self.entity, build_query_options(query))

        logger.debug("primary find_one %s %r", self.entity.name, predicate)
        document = await self._gateway_for(self.entity).find_one(predicate, options)
        if document is None:
            return None

        record = from_storage(document, self.entity)
        await self.include_related(self.entity, [record], query.include_related, cache)
        return record

    # --- predicate narrowing ---

    async def build_predicate(
        self,
        entity: EntityType,
        where: Mapping[str, Any],
        *,
        cache: dict[str, list[dict[str, Any]]] | None = None,
        keep: set[str] | None = None,
    ) -> dict[str, Any]:
        """Translate a domain where clause into a storage predicate.

        Relation predicates are resolved into ``$in`` filters first, deepest
        relation first. When *cache* is given, the documents fetched for each
        relation named in *keep* are fetched in full and stored in it.
        """
        plain, related = partition_predicates(entity, where)
        predicate = to_storage(plain, entity)
        if not related:
            return predicate

        filters: dict[str, list[Any]] = {}
        for name, sub_where in related.items():
            relation = entity.require_relation(name)
            full = cache is not None and keep is not None and name in keep
            key, values, documents = await self._candidates(entity, relation, sub_where, full)
            filters[key] = unique(filters.get(key, []) + values)
            if full and cache is not None:
                cache[name] = documents

        return merge_in_filters(predicate, filters)

    async def _candidates(
        self,
        owner: EntityType,
        relation: Relation,
        sub_where: Mapping[str, Any],
        full: bool,
    ) -> tuple[str, list[Any], list[dict[str, Any]]]:
        """Look up the related documents matching *sub_where*.

        Returns:
            ``(key, values, documents)``: the storage field on *owner* to
            filter on, the candidate values for it and the raw documents.
        """
        target = relation.target
        target_predicate = await self.build_predicate(target, sub_where)
        target_pk = target.primary_attribute.storage_name

        if relation.through is not None:
            targets = await self._gateway_for(target).find(
                target_predicate, projection=None if full else {target_pk: 1}
            )
            through = relation.through
            through_key = through.storage_name(relation.through_key or "")
            foreign_key = through.storage_name(relation.foreign_key)
            linked = _key_values(
                through.attribute(relation.through_key or ""),
                (d.get(target_pk) for d in targets),
            )
            links = await self._gateway_for(through).find(
                {through_key: {"$in": unique(linked)}},
                projection={foreign_key: 1, through_key: 1},
            )
            values = _key_values(
                owner.primary_attribute, (link.get(foreign_key) for link in links)
            )
            return owner.primary_attribute.storage_name, unique(values), list(targets)

        if relation.kind is RelationKind.BELONGS_TO:
            projection = None if full else {target_pk: 1}
            documents = await self._gateway_for(target).find(
                target_predicate, projection=projection
            )
            local = owner.attribute(relation.foreign_key)
            values = _key_values(local, (doc.get(target_pk) for doc in documents))
            key = owner.storage_name(relation.foreign_key)
        else:
            foreign_key = target.storage_name(relation.foreign_key)
            projection = None if full else {target_pk: 1, foreign_key: 1}
            documents = await self._gateway_for(target).find(
                target_predicate, projection=projection
            )
            values = _key_values(
                owner.primary_attribute, (doc.get(foreign_key) for doc in documents)
            )
            key = owner.primary_attribute.storage_name

        logger.debug(
            "relation predicate %s.%s -> %d candidates",
            owner.name,
            relation.foreign_key,
            len(values),
        )
        return key, unique(values), list(documents)

    # --- include_related ---

    async def include_related(
        self,
        entity: EntityType,
        records: list[dict[str, Any]],
        related: Mapping[str, Any],
        cache: Mapping[str, list[dict[str, Any]]] | None = None,
        *,
        allow_nested: bool = True,
    ) -> None:
        """Fetch and attach every requested relation, in declaration order.

        A relation resolved with ``nested`` is fetched without store-side
        pagination; its related entities' own relations are attached and
        the stitched lists are then cut to the requested ``from``/``size``
        window in memory.
        """
        if not records:
            return
        for name, raw_options in related.items():
            options = RelatedOptions.coerce(raw_options)
            relation = entity.require_relation(name)
            nested = allow_nested and (options.nested or relation.nested)

            cached = (cache or {}).get(name)
            if cached is not None and (
                options.where or options.sort or options.from_ or options.size
            ):
                cached = None

            if relation.through is not None:
                related_records = await self._attach_through(
                    entity, records, name, relation, options, cached, paginate=not nested
                )
            else:
                related_records = await self._attach(
                    entity, records, name, relation, options, cached, paginate=not nested
                )

            if not nested:
                continue
            await self._attach_nested(relation.target, related_records)
            if options.paginated and not relation.kind.is_single:
                start = int(options.from_ or 0)
                stop = start + int(options.size)
                for record in records:
                    record[name] = record[name][start:stop]

    async def _fetch_related(
        self,
        target: EntityType,
        field: str,
        keys: list[Any],
        options: RelatedOptions,
        paginate: bool,
    ) -> list[dict[str, Any]]:
        where = {**options.where, field: {"$in": keys}}
        predicate = await self.build_predicate(target, where)
        store_options = storage_options(target, build_query_options(options))
        if not paginate:
            store_options.pop("skip", None)
            store_options.pop("limit", None)
        documents = await self._gateway_for(target).find(predicate, store_options)
        return [from_storage(doc, target) for doc in documents]

    async def _attach(
        self,
        entity: EntityType,
        records: list[dict[str, Any]],
        name: str,
        relation: Relation,
        options: RelatedOptions,
        cached: list[dict[str, Any]] | None,
        *,
        paginate: bool,
    ) -> list[dict[str, Any]]:
        target = relation.target
        if relation.kind is RelationKind.BELONGS_TO:
            local_field, target_field = relation.foreign_key, target.primary_key
        else:
            local_field, target_field = entity.primary_key, relation.foreign_key

        keys = unique(_flatten(record.get(local_field) for record in records))
        if cached is not None:
            related = [from_storage(doc, target) for doc in cached]
        elif keys:
            related = await self._fetch_related(target, target_field, keys, options, paginate)
        else:
            # Every join key is null: nothing to look up
            related = []

        index: dict[Any, list[dict[str, Any]]] = {}
        for item in related:
            for value in _as_list(item.get(target_field)):
                index.setdefault(join_key(value), []).append(item)

        for record in records:
            local = record.get(local_field)
            if relation.kind.is_single:
                matches = index.get(join_key(local), []) if local is not None else []
                record[name] = matches[0] if matches else None
            else:
                record[name] = [
                    item for value in _as_list(local) for item in index.get(join_key(value), [])
                ]

        logger.debug("included %s.%s: %d related", entity.name, name, len(related))
        return related

    async def _attach_through(
        self,
        entity: EntityType,
        records: list[dict[str, Any]],
        name: str,
        relation: Relation,
        options: RelatedOptions,
        cached: list[dict[str, Any]] | None,
        *,
        paginate: bool,
    ) -> list[dict[str, Any]]:
        target = relation.target
        through: EntityType = relation.through  # type: ignore[assignment]
        through_key = relation.through_key or ""

        keys = unique(_flatten(record.get(entity.primary_key) for record in records))
        links: list[dict[str, Any]] = []
        if keys:
            link_predicate = await self.build_predicate(
                through, {relation.foreign_key: {"$in": keys}}
            )
            links = [
                from_storage(doc, through)
                for doc in await self._gateway_for(through).find(link_predicate)
            ]

        target_ids = unique(_flatten(link.get(through_key) for link in links))
        if cached is not None:
            related = [from_storage(doc, target) for doc in cached]
        elif target_ids:
            related = await self._fetch_related(
                target, target.primary_key, target_ids, options, paginate
            )
        else:
            related = []

        by_id = {join_key(item.get(target.primary_key)): item for item in related}
        targets_of: dict[Any, list[dict[str, Any]]] = {}
        for link in links:
            item = by_id.get(join_key(link.get(through_key)))
            if item is None:
                continue
            matches = targets_of.setdefault(join_key(link.get(relation.foreign_key)), [])
            if all(item is not seen for seen in matches):
                matches.append(item)

        for record in records:
            matches = targets_of.get(join_key(record.get(entity.primary_key)), [])
            if relation.kind.is_single:
                record[name] = matches[0] if matches else None
            else:
                record[name] = matches

        logger.debug(
            "included %s.%s through %s: %d related", entity.name, name, through.name, len(related)
        )
        return related

    async def _attach_nested(
        self, target: EntityType, related_records: list[dict[str, Any]]
    ) -> None:
        """Resolve every relation of *target* onto the related records."""
        nested = {name: RelatedOptions() for name in target.relations()}
        if nested and related_records:
            await self.include_related(target, related_records, nested, allow_nested=False)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _key_values(attr: Attribute | None, values: Iterable[Any]) -> list[Any]:
    """Candidate values in the storage form of the attribute they filter.

    Native identifiers are decoded first, so keys read from one collection
    can filter a plain string key in another. Undeclared keys keep the values
    as stored.
    """
    flat = _flatten(values)
    if attr is None:
        return flat
    flat = [join_key(value) for value in flat]
    if attr.identifier:
        return [encode_id(value) for value in flat]
    return flat
