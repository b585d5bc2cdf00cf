"""Unit tests for query option building."""

from __future__ import annotations

from doc_query.core.options import build_query_options, sort_direction
from doc_query.core.query import Query, RelatedOptions


class TestBuildQueryOptions:
    def test_defaults(self) -> None:
        assert build_query_options(Query()) == {"skip": 0}

    def test_from_and_size(self) -> None:
        options = build_query_options(Query(from_=10, size=5))
        assert options == {"skip": 10, "limit": 5}

    def test_numeric_strings(self) -> None:
        options = build_query_options({"from": "20", "size": "10"})
        assert options == {"skip": 20, "limit": 10}

    def test_page_when_no_offset(self) -> None:
        assert build_query_options(Query(page=2, size=10)) == {"skip": 20, "limit": 10}

    def test_offset_wins_over_page(self) -> None:
        assert build_query_options(Query(from_=5, page=2, size=10))["skip"] == 5

    def test_sort(self) -> None:
        options = build_query_options(Query(sort={"title": "desc", "views": "asc", "n": -1}))
        assert options["sort"] == {"title": -1, "views": 1, "n": -1}

    def test_with_count(self) -> None:
        assert build_query_options(Query(with_count=True))["with_count"] is True

    def test_related_options(self) -> None:
        options = build_query_options(RelatedOptions(from_=1, size=2, sort={"body": 1}))
        assert options == {"skip": 1, "limit": 2, "sort": {"body": 1}}


class TestSortDirection:
    def test_values(self) -> None:
        assert sort_direction("desc") == -1
        assert sort_direction("DESC") == 1
        assert sort_direction(" desc ") == 1
        assert sort_direction("asc") == 1
        assert sort_direction("-1") == -1
        assert sort_direction(1) == 1
        assert sort_direction(None) == 1
