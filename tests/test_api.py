from fastapi.testclient import TestClient
from invmetrics.api import create_app
from invmetrics.errors import StoreError
from invmetrics.stores.memory import InMemoryStore

URL = "/metrics/invitations/daily"
PARAMS = {"tenantId": "t1", "accountId": "a1", "from": "2025-09-01", "to": "2025-09-03"}

def test_daily_metrics(test_settings):
    with TestClient(create_app(test_settings, store=InMemoryStore())) as client:
        r = client.get(URL, params=PARAMS)
    assert r.status_code == 200
    data = r.json()
    assert [d["date"] for d in data] == ["2025-09-01", "2025-09-02", "2025-09-03"]
    assert all(d["status"] == "ok" and d["value"] >= 0 for d in data)
    assert isinstance(data[0]["previousPeriodComparison"], int)
    assert all("previousPeriodComparison" not in d for d in data[1:])

def test_repeated_requests_return_identical_bodies(test_settings):
    with TestClient(create_app(test_settings, store=InMemoryStore())) as client:
        first = client.get(URL, params=PARAMS).json()
        second = client.get(URL, params=PARAMS).json()
    assert first == second

def test_inverted_range_is_rejected_without_writes(test_settings):
    store = InMemoryStore()
    with TestClient(create_app(test_settings, store=store)) as client:
        r = client.get(URL, params={**PARAMS, "from": "2025-09-10", "to": "2025-09-01"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid query parameters",
                        "details": "from date must be less than or equal to to date"}
    assert store.commits == 0
    assert store.docs == {}

def test_missing_parameter(test_settings):
    with TestClient(create_app(test_settings, store=InMemoryStore())) as client:
        r = client.get(URL, params={"accountId": "a1", "from": "2025-09-01", "to": "2025-09-03"})
    assert r.status_code == 400
    assert r.json()["details"] == "tenantId is required and must be a string"

class BrokenStore(InMemoryStore):
    async def query_range(self, collection, filters, lower, upper):
        raise StoreError(f"failed to query collection {collection.name}", collection.name)

def test_store_failure_is_internal_error(test_settings):
    with TestClient(create_app(test_settings, store=BrokenStore())) as client:
        r = client.get(URL, params=PARAMS)
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error", "details": "failed to query collection invitations"}

def test_health_and_unknown_route(test_settings):
    with TestClient(create_app(test_settings, store=InMemoryStore())) as client:
        health = client.get("/health").json()
        missing = client.get("/nope")
    assert health["status"] == "ok"
    assert health["service"] == test_settings.service_name
    assert missing.status_code == 404
    assert missing.json() == {"error": "Not Found", "details": "Route GET /nope not found"}

def test_years_below_1000(test_settings):
    store = InMemoryStore()
    with TestClient(create_app(test_settings, store=store)) as client:
        r = client.get(URL, params={**PARAMS, "from": "1000-01-02", "to": "1000-01-03"})
        early = client.get(URL, params={**PARAMS, "from": "0999-06-01", "to": "0999-06-01"})
    assert r.status_code == 200
    assert [d["date"] for d in r.json()] == ["1000-01-02", "1000-01-03"]
    assert r.json()[0]["previousPeriodComparison"] == 0
    assert early.status_code == 200
    assert [d["date"] for d in early.json()] == ["0999-06-01"]

def test_out_of_range_years_are_rejected_without_writes(test_settings):
    store = InMemoryStore()
    with TestClient(create_app(test_settings, store=store)) as client:
        low = client.get(URL, params={**PARAMS, "from": "0001-01-03", "to": "0001-01-04"})
        high = client.get(URL, params={**PARAMS, "from": "9999-12-30", "to": "9999-12-31"})
    assert (low.status_code, high.status_code) == (400, 400)
    assert low.json()["error"] == "Invalid query parameters"
    assert "0001-01-08" in high.json()["details"]
    assert store.commits == 0

def test_wrong_method_has_details(test_settings):
    with TestClient(create_app(test_settings, store=InMemoryStore())) as client:
        r = client.post(URL, params=PARAMS)
    assert r.status_code == 405
    body = r.json()
    assert body["error"] == "Method Not Allowed"
    assert isinstance(body["details"], str)
    assert "POST /metrics/invitations/daily" in body["details"]
