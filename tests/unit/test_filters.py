"""Tests for list filters and list queries."""

import pytest

from query_cache.errors import ConfigurationError
from query_cache.filters import Eq, ILike, In, Like, ListQuery, Range


class TestParams:
    def test_eq(self):
        assert Eq("open").params("status") == [("status", "eq.open")]
        assert Eq(True).params("is_active") == [("is_active", "eq.true")]

    def test_eq_none_is_null(self):
        assert Eq(None).params("deleted_at") == [("deleted_at", "is.null")]

    def test_in_quotes_reserved_characters(self):
        assert In(["a", "b,c"]).params("id") == [("id", 'in.(a,"b,c")')]

    def test_range(self):
        assert Range(gte=1, lt=10).params("price") == [("price", "gte.1"), ("price", "lt.10")]

    def test_query_params(self):
        query = ListQuery.of({"status": Eq("open")}, order="created_at", descending=True, limit=10, offset=20)
        assert query.params() == [
            ("status", "eq.open"),
            ("order", "created_at.desc"),
            ("limit", "10"),
            ("offset", "20"),
        ]


class TestMatches:
    def test_in(self):
        assert In(["a", "b"]).matches("a")
        assert not In(["a", "b"]).matches("c")

    def test_range_bounds(self):
        assert Range(gte=1, lte=5).matches(5)
        assert not Range(gt=1).matches(1)
        assert not Range(gte=1).matches(None)

    def test_range_incomparable_is_no_match(self):
        assert not Range(gte=1).matches("text")

    def test_like(self):
        assert Like("Bi%").matches("Bike")
        assert not Like("bi%").matches("Bike")
        assert ILike("bi%").matches("Bike")
        assert Like("L_mp").matches("Lamp")

    def test_query_matches_record(self):
        query = ListQuery.of({"status": Eq("open"), "owner": In(["u1"])})
        assert query.matches({"status": "open", "owner": "u1"})
        assert not query.matches({"status": "open", "owner": "u2"})


class TestValidation:
    def test_untagged_filter_rejected(self):
        with pytest.raises(ConfigurationError, match="status"):
            ListQuery.of({"status": "open"})

    def test_in_rejects_string(self):
        with pytest.raises(ConfigurationError):
            In("abc")

    def test_empty_range_rejected(self):
        with pytest.raises(ConfigurationError):
            Range()

    def test_unhashable_eq_rejected(self):
        with pytest.raises(ConfigurationError):
            Eq(["a"])

    def test_of_accepts_query_and_overrides(self):
        query = ListQuery.of({"status": Eq("open")})
        assert ListQuery.of(query) is query
        assert ListQuery.of(query, limit=5).limit == 5
