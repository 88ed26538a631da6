"""Tests for cache key derivation."""

import datetime
import uuid

from ormcache.keys import (
    VOLATILE_QUERY_FIELDS,
    digest_query_spec,
    entity_key,
    normalize_query_spec,
    query_key,
)


def test_entity_key():
    assert entity_key("orders", 42) == ["orders", "42"]
    assert entity_key("orders", "abc") == ["orders", "abc"]
    assert entity_key("order_items", (1, 101)) == ["order_items", "1-101"]


def test_query_key_shape():
    key = query_key("orders", {"where": {"status": "open"}})
    assert key[:2] == ["orders", "query"]
    assert len(key) == 3
    # sha256 hex digest
    assert len(key[2]) == 64


def test_query_key_override_is_used_verbatim():
    spec = {"where": {"status": "open"}}
    assert query_key("orders", spec, override_key="dashboard") == ["orders", "query", "dashboard"]
    assert query_key("orders", None, override_key="dashboard") == ["orders", "query", "dashboard"]


def test_query_key_ignores_volatile_fields():
    base = {"where": {"status": "open"}, "limit": 10}
    noisy = dict(base, session=object(), transaction=object(), logging=print, benchmark=True,
                 replacements={"x": 1}, bind_params={"y": 2})

    assert query_key("orders", base) == query_key("orders", noisy)
    assert VOLATILE_QUERY_FIELDS.isdisjoint(normalize_query_spec(noisy))


def test_query_key_is_key_order_independent():
    one = {"where": {"status": "open", "total": {"gte": 10, "lt": 100}}, "limit": 5, "offset": 0}
    two = {"offset": 0, "limit": 5, "where": {"total": {"lt": 100, "gte": 10}, "status": "open"}}

    assert query_key("orders", one) == query_key("orders", two)


def test_query_key_sets_are_order_independent():
    assert digest_query_spec({"where": {"id": {3, 1, 2}}}) == digest_query_spec({"where": {"id": {2, 3, 1}}})


def test_query_key_discriminates_filter_values():
    open_orders = query_key("orders", {"where": {"status": "open"}})
    closed_orders = query_key("orders", {"where": {"status": "closed"}})
    assert open_orders != closed_orders


def test_query_key_keeps_list_order():
    # ordering is part of the query
    by_total = query_key("orders", {"order_by": ["total", "id"]})
    by_id = query_key("orders", {"order_by": ["id", "total"]})
    assert by_total != by_id


def test_query_key_discriminates_entities():
    spec = {"where": {"id": 1}}
    assert query_key("orders", spec)[2] == query_key("customers", spec)[2]
    assert query_key("orders", spec) != query_key("customers", spec)


def test_empty_specs_share_a_key():
    assert query_key("orders", None) == query_key("orders", {}) == query_key("orders", {"logging": True})


def test_digest_handles_non_json_values():
    when = datetime.datetime(2024, 1, 1, 12, 0)
    spec = {"where": {"created_at": {"gte": when}, "ref": uuid.UUID(int=1), "custom": object}}
    assert digest_query_spec(spec) == digest_query_spec(dict(spec))
    assert digest_query_spec(spec) != digest_query_spec({"where": {"created_at": {"gte": when}}})
