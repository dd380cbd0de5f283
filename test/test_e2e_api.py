# Test type: End-to-End (E2E) API
# Validation to be executed: Full HTTP round-trip for every API endpoint
# Command: pytest test/test_e2e_api.py -v

"""End-to-end tests that exercise every API endpoint via HTTP using the ASGI
transport (no real server process required).  These tests verify request/
response contracts, status codes, envelopes, and identity handling.
"""

from __future__ import annotations

import pytest

from app.config import settings

pytestmark = pytest.mark.anyio


# ── Helper payloads ──────────────────────────────────────────────────────

CALC = "/api/tax/calc-simple"

RESIDENTIAL_5000 = {"monthlyRent": 5000, "houseCategory": "residential"}


def _as(client_id: str | None = None, openid: str | None = None) -> dict:
    headers = {}
    if client_id:
        headers["Cookie"] = f"{settings.CLIENT_COOKIE}={client_id}"
    if openid:
        headers[settings.AUTH_IDENTITY_HEADER] = openid
    return headers


# ══════════════════════════════════════════════════════════════════════════
# 1.  Health / liveness
# ══════════════════════════════════════════════════════════════════════════


async def test_health_check(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_ping(client):
    resp = await client.get("/api/ping")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


async def test_response_time_header(client):
    resp = await client.get("/api/ping")
    assert "X-Response-Time-Ms" in resp.headers


# ══════════════════════════════════════════════════════════════════════════
# 2.  POST /api/tax/calc-simple
# ══════════════════════════════════════════════════════════════════════════


async def test_calc_residential(client):
    resp = await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == 0
    data = body["data"]
    assert data["houseCategory"] == "residential"
    assert data["propertyRate"] == 0.04
    assert data["incomeRate"] == 0.10
    assert data["propertyTax"] == 200.0
    assert data["incomeTax"] == 500.0
    assert data["totalTax"] == 700.0


async def test_calc_with_deductions(client):
    payload = {**RESIDENTIAL_5000, "propertyDeduction": True, "incomeDeduction": True}
    data = (await client.post(CALC, json=payload, headers=_as("c1"))).json()["data"]
    assert data["propertyBase"] == 4200.0
    assert data["incomeBase"] == 4200.0
    assert data["totalTax"] == 588.0


async def test_calc_non_residential(client):
    payload = {"monthlyRent": 10000, "houseCategory": "non_residential"}
    data = (await client.post(CALC, json=payload, headers=_as("c1"))).json()["data"]
    assert data["propertyTax"] == 1200.0
    assert data["incomeTax"] == 2000.0
    assert data["totalTax"] == 3200.0


async def test_calc_accepts_legacy_field_names(client):
    payload = {"monthlyRent": 5000, "houseType": "residential", "propHalf": True, "incDeduction": True}
    data = (await client.post(CALC, json=payload, headers=_as("c1"))).json()["data"]
    assert data["propertyTax"] == 100.0
    assert data["incomeTax"] == 420.0


async def test_calc_records_the_quote(client):
    await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1"))
    resp = await client.get("/api/count")
    assert resp.json() == {"code": 0, "data": 1}


async def test_calc_issues_client_cookie(client):
    resp = await client.post(CALC, json=RESIDENTIAL_5000)
    assert resp.status_code == 200
    assert settings.CLIENT_COOKIE in resp.cookies


async def test_existing_cookie_not_reissued(client):
    resp = await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1"))
    assert "set-cookie" not in resp.headers


@pytest.mark.parametrize(
    "payload",
    [
        {"monthlyRent": 0, "houseCategory": "residential"},
        {"monthlyRent": -100, "houseCategory": "residential"},
        {"monthlyRent": 5000, "houseCategory": "villa"},
        {"monthlyRent": "abc", "houseCategory": "residential"},
        {"monthlyRent": "5000", "houseCategory": "residential"},
        {"monthlyRent": True, "houseCategory": "residential"},
        {"monthlyRent": 0.001, "houseCategory": "residential"},
        {"monthlyRent": 100000000, "houseCategory": "residential"},
        {"houseCategory": "residential"},
        {"monthlyRent": 5000},
    ],
)
async def test_calc_invalid_input_is_client_error(client, payload):
    resp = await client.post(CALC, json=payload, headers=_as("c1"))
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == 1
    assert body["msg"]
    assert (await client.get("/api/count")).json()["data"] == 0


async def test_calc_malformed_json_is_client_error(client):
    resp = await client.post(CALC, content="not-json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["code"] == 1


async def test_calc_survives_store_outage(unavailable_client):
    resp = await unavailable_client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1"))
    assert resp.status_code == 200
    assert resp.json()["data"]["totalTax"] == 700.0

    diag = (await unavailable_client.get("/api/diagnostics")).json()
    assert diag["persistFailures"] == 1


# ══════════════════════════════════════════════════════════════════════════
# 3.  GET /api/my/records
# ══════════════════════════════════════════════════════════════════════════


async def test_my_records_by_cookie(client):
    await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1"))
    await client.post(CALC, json={**RESIDENTIAL_5000, "monthlyRent": 6000}, headers=_as("c1"))
    await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c2"))

    resp = await client.get("/api/my/records", headers=_as("c1"))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [r["monthlyRent"] for r in data] == [6000.0, 5000.0]
    assert all(r["clientIdentity"] == "c1" for r in data)


async def test_authenticated_identity_takes_precedence(client):
    await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1", openid="user-1"))

    by_cookie = (await client.get("/api/my/records", headers=_as("c1"))).json()["data"]
    assert by_cookie == []

    by_user = (await client.get("/api/my/records", headers=_as("c9", openid="user-1"))).json()["data"]
    assert len(by_user) == 1
    assert by_user[0]["identityKind"] == "authenticated"


async def test_my_records_limit(client):
    for _ in range(5):
        await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1"))
    data = (await client.get("/api/my/records?limit=2", headers=_as("c1"))).json()["data"]
    assert len(data) == 2
    assert data[0]["id"] > data[1]["id"]

    data = (await client.get("/api/my/records?limit=1000", headers=_as("c1"))).json()["data"]
    assert len(data) == 5


async def test_my_records_zero_limit_rejected(client):
    resp = await client.get("/api/my/records?limit=0", headers=_as("c1"))
    assert resp.status_code == 400


async def test_my_records_store_outage(unavailable_client):
    resp = await unavailable_client.get("/api/my/records", headers=_as("c1"))
    assert resp.status_code == 503
    body = resp.json()
    assert body["code"] == 1
    assert "sqlite" not in body["msg"].lower()


# ══════════════════════════════════════════════════════════════════════════
# 4.  Stats
# ══════════════════════════════════════════════════════════════════════════


async def test_count_empty(client):
    assert (await client.get("/api/count")).json() == {"code": 0, "data": 0}


async def test_count_tolerates_store_outage(unavailable_client):
    resp = await unavailable_client.get("/api/count")
    assert resp.status_code == 200
    assert resp.json() == {"code": 0, "data": 0}


async def test_overview(client):
    await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1"))
    await client.post(CALC, json={"monthlyRent": 10000, "houseCategory": "non_residential"}, headers=_as("c1"))

    data = (await client.get("/api/stats/overview")).json()["data"]
    assert data["totalRecords"] == 2
    assert data["avgRent"] == 7500.0
    assert data["avgTotalTax"] == 1950.0
    assert data["sumTotalTax"] == 3900.0
    assert data["perCategory"] == [
        {"category": "non_residential", "count": 1, "avgTax": 3200.0},
        {"category": "residential", "count": 1, "avgTax": 700.0},
    ]


async def test_overview_store_outage(unavailable_client):
    resp = await unavailable_client.get("/api/stats/overview")
    assert resp.status_code == 503
    assert resp.json()["code"] == 1


async def test_buckets_custom_edges(client):
    for rent in (500, 1500, 2500):
        await client.post(CALC, json={"monthlyRent": rent, "houseCategory": "residential"}, headers=_as("c1"))

    resp = await client.get("/api/stats/buckets", params={"edges": "0,1000,2000"})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"labels": ["0-1000", "1000-2000", "2000+"], "counts": [1, 1, 1]}


async def test_buckets_default_edges(client):
    data = (await client.get("/api/stats/buckets")).json()["data"]
    assert data["labels"][0] == "0-1000"
    assert data["labels"][-1] == "10000+"
    assert len(data["counts"]) == len(data["labels"])


@pytest.mark.parametrize("edges", ["1000,2000", "0,2000,1000", "0,x"])
async def test_buckets_bad_edges(client, edges):
    resp = await client.get("/api/stats/buckets", params={"edges": edges})
    assert resp.status_code == 400
    assert resp.json()["code"] == 1


# ══════════════════════════════════════════════════════════════════════════
# 5.  DELETE /api/admin/records
# ══════════════════════════════════════════════════════════════════════════


async def test_reset_disabled_without_token(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "")
    resp = await client.delete("/api/admin/records")
    assert resp.status_code == 404


async def test_reset_requires_matching_token(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "s3cret")
    resp = await client.delete("/api/admin/records", headers={"X-Admin-Token": "nope"})
    assert resp.status_code == 403
    assert resp.json()["code"] == 1


async def test_reset_clears_records(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "s3cret")
    await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c1"))
    await client.post(CALC, json=RESIDENTIAL_5000, headers=_as("c2"))

    resp = await client.delete("/api/admin/records", headers={"X-Admin-Token": "s3cret"})
    assert resp.status_code == 200
    assert resp.json() == {"code": 0, "data": 2}
    assert (await client.get("/api/count")).json()["data"] == 0


# ══════════════════════════════════════════════════════════════════════════
# 6.  GET /api/diagnostics and cross-cutting
# ══════════════════════════════════════════════════════════════════════════


async def test_diagnostics(client):
    resp = await client.get("/api/diagnostics")
    assert resp.status_code == 200
    data = resp.json()
    assert "MB" in data["memory"]
    assert data["threads"] >= 1
    assert data["persistFailures"] == 0
    assert len(data["uptime"].split(":")) == 3


async def test_unknown_route_returns_404(client):
    resp = await client.get("/api/nonexistent")
    assert resp.status_code == 404
    assert resp.json()["code"] == 1


async def test_wrong_method_returns_405(client):
    resp = await client.get(CALC)
    assert resp.status_code == 405
