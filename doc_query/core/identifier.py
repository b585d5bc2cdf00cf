"""Identifier codec.

Converts between the portable string form of a document identifier and the
store's native ``bson.ObjectId``. Encoding fails soft: strings that are not
valid identifiers are returned unchanged rather than raising, so a bad id
surfaces as a store-side "no match".
"""

from __future__ import annotations

from typing import Any

from bson import ObjectId


def is_identifier(value: Any) -> bool:
    """Check if *value* is a 24-hex-digit identifier string or an ObjectId."""
    if isinstance(value, ObjectId):
        return True
    if not isinstance(value, str) or len(value) != 24:
        return False
    return ObjectId.is_valid(value)


def encode_id(value: Any) -> Any:
    """Encode *value* as an ObjectId when it is a valid identifier string.

    Existing ObjectId instances, ``None`` and anything that is not a valid
    identifier are returned unchanged.
    """
    if isinstance(value, str) and is_identifier(value):
        return ObjectId(value)
    return value


def decode_id(value: Any) -> Any:
    """Stringify a native identifier. ``None`` passes through."""
    if value is None:
        return None
    return str(value)
