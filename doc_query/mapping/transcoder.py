"""Name/alias transcoder.

Translates documents and predicates between domain attribute names and
storage field names. Identifier-encoded attributes are converted to and from
``ObjectId`` on the way through.

Operator keys (``$in``, ``$ne``, ...) inherit the descriptor of the attribute
they are nested under, so ``{"id": {"$in": [...]}}`` is encoded like
``{"id": ...}``. Logical operators at entity level (``$or``, ``$and``,
``$nor``) and update operators (``$set``, ...) hold entity-level mappings and
are transcoded recursively against the same schema.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from typing import Any

from doc_query.core.identifier import decode_id, encode_id
from doc_query.mapping.schema import Attribute, EntityType

OPERATOR_PREFIX = "$"


def is_operator(key: str) -> bool:
    return key.startswith(OPERATOR_PREFIX)


def to_storage(
    obj: Mapping[str, Any] | None,
    entity: EntityType,
    *,
    strict: bool = False,
) -> dict[str, Any]:
    """Translate a domain document or predicate to storage field names.

    Relation and transient attributes are dropped. Undeclared keys are kept
    unless *strict* is set, which is what mutations use so that only declared
    attributes are persisted. The input is never modified.
    """
    if not obj:
        return {}
    return _encode_mapping(obj, entity, strict)


def _encode_mapping(obj: Mapping[str, Any], entity: EntityType, strict: bool) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in obj.items():
        if is_operator(key):
            result[key] = _encode_entity_level(value, entity, strict)
            continue

        head, sep, rest = key.partition(".")
        attr = entity.attribute(head)
        if attr is None:
            if not strict:
                result[key] = value
            continue
        if not attr.persisted:
            continue

        # Dotted paths address sub-fields; the attribute descriptor applies to
        # the attribute value itself only.
        result[attr.storage_name + sep + rest] = _encode_value(value, None if rest else attr)
    return result


def _encode_entity_level(value: Any, entity: EntityType, strict: bool) -> Any:
    if isinstance(value, Mapping):
        return _encode_mapping(value, entity, strict)
    if isinstance(value, (list, tuple)):
        return [
            _encode_mapping(item, entity, strict) if isinstance(item, Mapping) else item
            for item in value
        ]
    return value


def _encode_value(value: Any, attr: Attribute | None) -> Any:
    if value is None:
        return None
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, Mapping):
        return {
            key: _encode_value(item, attr if is_operator(key) else None)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_encode_value(item, attr) for item in value]
    if attr is not None and attr.identifier:
        return encode_id(value)
    return value


def from_storage(raw: Mapping[str, Any] | None, entity: EntityType) -> dict[str, Any] | None:
    """Translate a raw store document to domain attribute names.

    Every declared attribute is read from its alias (or its own name). Aliased
    values move to the canonical name, identifier-encoded values are
    stringified, and undeclared fields pass through untouched.
    """
    if raw is None:
        return None

    doc = dict(raw)
    for name, attr in entity.attributes.items():
        if attr.relation is not None:
            continue
        storage_name = attr.storage_name
        if storage_name not in doc:
            continue

        value = doc.pop(storage_name) if storage_name != name else doc[name]
        if value is not None and attr.identifier:
            value = _decode_value(value)
        doc[name] = value
    return doc


def _decode_value(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [decode_id(item) for item in value]
    return decode_id(value)


def field_path(entity: EntityType, path: str) -> str:
    """Translate a dotted domain path to its storage path (first segment only)."""
    head, sep, rest = path.partition(".")
    return entity.storage_name(head) + sep + rest
