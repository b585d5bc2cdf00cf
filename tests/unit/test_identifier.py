"""Unit tests for the identifier codec."""

from __future__ import annotations

from bson import ObjectId

from doc_query.core.identifier import decode_id, encode_id, is_identifier

HEX = "5f1d7f3e9b1e8a3c4d2b6a10"


class TestIsIdentifier:
    def test_hex_string(self) -> None:
        assert is_identifier(HEX)

    def test_object_id(self) -> None:
        assert is_identifier(ObjectId(HEX))

    def test_wrong_length(self) -> None:
        assert not is_identifier(HEX[:-1])

    def test_non_hex(self) -> None:
        assert not is_identifier("z" * 24)

    def test_non_string(self) -> None:
        assert not is_identifier(42)
        assert not is_identifier(None)


class TestEncodeId:
    def test_encodes_valid_string(self) -> None:
        assert encode_id(HEX) == ObjectId(HEX)

    def test_invalid_string_passes_through(self) -> None:
        assert encode_id("not-an-id") == "not-an-id"

    def test_object_id_passes_through(self) -> None:
        oid = ObjectId(HEX)
        assert encode_id(oid) is oid

    def test_none_passes_through(self) -> None:
        assert encode_id(None) is None


class TestDecodeId:
    def test_stringifies_object_id(self) -> None:
        assert decode_id(ObjectId(HEX)) == HEX

    def test_none_passes_through(self) -> None:
        assert decode_id(None) is None
