import pytest
from conftest import run_with_store
from invmetrics.dates import day_start
from invmetrics.errors import StoreError
from invmetrics.stores.base import Collection

EVENTS = Collection("invitations", instant_field="received_at")

def _evt(key, ts, tenant="t1"):
    return key, {"tenant_id": tenant, "account_id": "a1", "external_id": key, "received_at": ts}

def test_upsert_merges_fields(make_store):
    async def scenario(store):
        await store.upsert_by_key(EVENTS, "k1", {"a": 1, "b": 2, "received_at": "2025-09-01T10:00:00.000Z"})
        await store.upsert_by_key(EVENTS, "k1", {"b": 3, "c": 4})
        return await store.get(EVENTS, "k1")

    doc = run_with_store(make_store, scenario)
    assert doc == {"a": 1, "b": 3, "c": 4, "received_at": "2025-09-01T10:00:00.000Z"}

def test_repeated_batches_are_idempotent(make_store):
    batch = [_evt("e1", "2025-09-01T01:00:00.000Z"), _evt("e2", "2025-09-02T05:30:00.000Z")]

    async def scenario(store):
        await store.upsert_many(EVENTS, batch)
        first = await store.query_range(EVENTS, {"tenant_id": "t1"}, day_start("2025-09-01"), day_start("2025-09-03"))
        await store.upsert_many(EVENTS, batch)
        second = await store.query_range(EVENTS, {"tenant_id": "t1"}, day_start("2025-09-01"), day_start("2025-09-03"))
        return first, second

    first, second = run_with_store(make_store, scenario)
    assert len(first) == 2
    assert first == second

def test_range_is_half_open(make_store):
    batch = [
        _evt("before", "2025-08-31T23:59:00.000Z"),
        _evt("first-midnight", "2025-09-01T00:00:00.000Z"),
        _evt("last-minute", "2025-09-03T23:59:00.000Z"),
        _evt("next-midnight", "2025-09-04T00:00:00.000Z"),
    ]

    async def scenario(store):
        await store.upsert_many(EVENTS, batch)
        return await store.query_range(EVENTS, {}, day_start("2025-09-01"), day_start("2025-09-04"))

    docs = run_with_store(make_store, scenario)
    assert {d["external_id"] for d in docs} == {"first-midnight", "last-minute"}

def test_filters_exclude_other_tenants(make_store):
    batch = [_evt("e1", "2025-09-01T01:00:00.000Z"), _evt("e2", "2025-09-01T02:00:00.000Z", tenant="t2")]

    async def scenario(store):
        await store.upsert_many(EVENTS, batch)
        return await store.query_range(EVENTS, {"tenant_id": "t2", "account_id": "a1"},
                                       day_start("2025-09-01"), day_start("2025-09-02"))

    docs = run_with_store(make_store, scenario)
    assert [d["external_id"] for d in docs] == ["e2"]

def test_invalid_batch_writes_nothing(make_store):
    batch = [_evt("e1", "2025-09-01T01:00:00.000Z"), ("", {"tenant_id": "t1"}), _evt("e3", "2025-09-01T03:00:00.000Z")]

    async def scenario(store):
        with pytest.raises(StoreError):
            await store.upsert_many(EVENTS, batch)
        return await store.query_range(EVENTS, {}, day_start("2025-09-01"), day_start("2025-09-02"))

    assert run_with_store(make_store, scenario) == []

def test_range_query_needs_instant_field(make_store):
    async def scenario(store):
        with pytest.raises(StoreError):
            await store.query_range(Collection("plain"), {}, day_start("2025-09-01"), day_start("2025-09-02"))
        return True

    assert run_with_store(make_store, scenario)
