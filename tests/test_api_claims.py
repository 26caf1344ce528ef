from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from ubi.api.app import create_app
from ubi.ledger.constants import ONE_DAY
from ubi.ledger.types import Campaign
from ubi.runtime import metrics
from ubi.runtime.identity import AccountRegistry
from ubi.runtime.interfaces import FixedClock
from ubi.runtime.memory_store import MemoryLedgerStore
from ubi.runtime.processor import ClaimProcessor
from ubi.runtime.reserve import TokenReserve

START = 1_767_225_600
END = START + 30 * ONE_DAY
NOW = START + 4 * ONE_DAY + 10


def _app(*, reserve: int = 10_000):
    reg = AccountRegistry()
    reg.register("0xalice", NOW - ONE_DAY)
    reg.register("0xmallory", NOW - ONE_DAY, poh_tier=0)
    clock = FixedClock(NOW)
    proc = ClaimProcessor(
        campaign=Campaign(period_start=START, period_end=END, daily_rate=10, initial_reserve=reserve),
        store=MemoryLedgerStore(),
        registry=reg,
        disburser=TokenReserve(reserve),
        clock=clock,
    )
    app = create_app(boot_runtime=False)
    app.state.processor = proc
    return app, clock


def test_claim_then_query_roundtrip() -> None:
    app, _clock = _app()
    c = TestClient(app)

    r = c.get("/v1/claims/0xalice/entitlement")
    assert r.status_code == 200
    assert r.json()["entitlement"] == 20

    r = c.post("/v1/claims", json={"address": "0xalice"})
    assert r.status_code == 200
    j = r.json()
    assert j["ok"] is True
    assert j["amount"] == 20
    assert j["day_index"] == 4
    assert j["claimed_at"] == NOW

    r = c.get("/v1/claims/0xalice")
    assert r.json()["last_claimed_at"] == NOW
    assert r.json()["privileged"] is True

    r = c.get("/v1/days/current")
    assert r.json() == {"ok": True, "day": 4, "claimer_count": 1, "total_distributed": 20}

    r = c.get("/v1/days/4")
    assert r.json()["claimer_count"] == 1

    r = c.get("/v1/campaign")
    j = r.json()
    assert j["total_claims"] == 1
    assert j["reserve"] == 10_000 - 20
    assert j["active"] is True


def test_too_soon_maps_to_409() -> None:
    app, clock = _app()
    c = TestClient(app)
    assert c.post("/v1/claims", json={"address": "0xalice"}).status_code == 200

    clock.advance(3600)
    r = c.post("/v1/claims", json={"address": "0xalice"})
    assert r.status_code == 409
    j = r.json()
    assert j["ok"] is False
    assert j["error"]["code"] == "too_soon"

    assert c.get("/v1/claims/0xalice/entitlement").json()["entitlement"] == 0


def test_not_privileged_and_outside_window_map_to_403() -> None:
    app, clock = _app()
    c = TestClient(app)

    r = c.post("/v1/claims", json={"address": "0xmallory"})
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "not_privileged"

    clock.set(END + 1)
    r = c.post("/v1/claims", json={"address": "0xalice"})
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "outside_window"


def test_transfer_failure_maps_to_502_and_leaves_ledger() -> None:
    app, _clock = _app(reserve=1)
    c = TestClient(app)

    r = c.post("/v1/claims", json={"address": "0xalice"})
    assert r.status_code == 502
    assert r.json()["error"]["code"] == "transfer_failed"
    assert c.get("/v1/claims/0xalice").json()["last_claimed_at"] is None
    assert c.get("/v1/days/4").json()["claimer_count"] == 0


def test_malformed_requests_are_rejected() -> None:
    app, _clock = _app()
    c = TestClient(app)

    r = c.post("/v1/claims", json={})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "invalid_payload"

    r = c.get("/v1/days/-1")
    assert r.status_code == 400


def test_routes_fail_closed_without_processor() -> None:
    app = create_app(boot_runtime=False)
    c = TestClient(app)
    r = c.get("/v1/claims/0xalice/entitlement")
    assert r.status_code == 500
    assert r.json()["error"]["code"] == "not_ready"

    r = c.get("/readyz")
    assert r.json()["ok"] is False
    assert c.get("/health").json()["ok"] is True


def test_health_reports_campaign_progress() -> None:
    app, _clock = _app()
    c = TestClient(app)
    c.post("/v1/claims", json={"address": "0xalice"})

    j = c.get("/v1/health").json()
    assert j["processor_attached"] is True
    assert j["current_day"] == 4
    assert j["total_claims"] == 1
    assert c.get("/readyz").json()["ok"] is True


def test_metrics_endpoint_is_opt_in(monkeypatch: pytest.MonkeyPatch) -> None:
    metrics.reset()
    app, _clock = _app()
    c = TestClient(app)

    monkeypatch.delenv("UBI_METRICS_ENABLED", raising=False)
    assert c.get("/v1/metrics").status_code == 404

    monkeypatch.setenv("UBI_METRICS_ENABLED", "1")
    c.post("/v1/claims", json={"address": "0xalice"})
    r = c.get("/v1/metrics")
    assert r.status_code == 200
    assert "ubi_claims_settled 1" in r.text
    assert "ubi_ledger_total_distributed 20" in r.text
    assert "ubi_reserve_remaining 9980" in r.text

    j = c.get("/v1/metrics/json").json()
    assert j["ok"] is True
    assert j["counters"]["distributed_total"] == 20
    assert j["gauges"]["ledger_total_claims"] == 1

    monkeypatch.delenv("UBI_METRICS_ENABLED")
    assert c.get("/v1/metrics/json").status_code == 404
    metrics.reset()


def test_create_app_boot_runtime_true_attaches_processor(monkeypatch: pytest.MonkeyPatch) -> None:
    from ubi.api import app as api_app

    monkeypatch.setattr(api_app, "build_processor", lambda: SimpleNamespace(campaign_id="ubi-test"))

    app = api_app.create_app(boot_runtime=True)
    assert getattr(app.state.processor, "campaign_id", "") == "ubi-test"


def test_cors_wildcard_is_rejected_in_prod(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("UBI_MODE", "prod")
    monkeypatch.setenv("UBI_CORS_ORIGINS", "*")
    with pytest.raises(RuntimeError):
        create_app(boot_runtime=False)
