"""Tests for the FastAPI routes."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from apipulse.api.server import create_app
from apipulse.config import settings
from apipulse.costs.service import CostTrackingService
from apipulse.monitoring.executor import ProbeExecutor
from apipulse.monitoring.models import CheckResult, CheckStatus, Connection
from apipulse.monitoring.service import MonitoringService

from conftest import NOW, elapsed_clock, mock_transport


@pytest.fixture
def client(connection_store, check_store, result_store, cost_store, vault):
    app = create_app()
    transport = mock_transport(200, {"data": [{"id": "t", "fee": 250}], "has_more": False})
    app.state.connections = connection_store
    app.state.checks = check_store
    app.state.results = result_store
    app.state.monitoring = MonitoringService(
        connection_store, check_store, result_store, vault,
        executor=ProbeExecutor(transport=transport, clock=elapsed_clock(15)),
    )
    app.state.costs = CostTrackingService(connection_store, vault, metrics=cost_store, transport=transport)
    return TestClient(app)


class TestCronRoute:
    def test_runs_due_checks(self, client, balance_check) -> None:
        resp = client.get("/api/cron/health-checks")
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["total_due"] == 1
        assert data["statuses"]["SUCCESS"] == 1

    def test_token_required_when_configured(self, client, monkeypatch) -> None:
        monkeypatch.setattr(settings, "cron_token", "s3cret")
        assert client.get("/api/cron/health-checks").status_code == 401
        assert client.get("/api/cron/health-checks", headers={"X-Cron-Token": "wrong"}).status_code == 401
        assert client.get("/api/cron/health-checks", headers={"X-Cron-Token": "s3cret"}).status_code == 200

    def test_token_does_not_guard_other_routes(self, client, monkeypatch, balance_check) -> None:
        monkeypatch.setattr(settings, "cron_token", "s3cret")
        assert client.get(f"/api/checks/{balance_check.id}/results").status_code == 200


class TestCheckRoutes:
    def test_trigger(self, client, balance_check) -> None:
        resp = client.post(f"/api/checks/{balance_check.id}/trigger")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "SUCCESS"
        assert data["id"].startswith("result_")
        assert data["metadata"]["request_headers"]["Authorization"] == "***"

    def test_trigger_unknown(self, client) -> None:
        resp = client.post("/api/checks/missing/trigger")
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "NOT_FOUND"

    def test_trigger_vault_failure_is_500(self, client, connection_store, check_store) -> None:
        from apipulse.monitoring.models import CheckConfig

        connection_store.create(Connection(id="c-bad", provider="stripe", base_url="https://x", api_key="junk"))
        check_store.create(CheckConfig(id="chk-bad", connection_id="c-bad", endpoint="/"))

        resp = client.post("/api/checks/chk-bad/trigger")

        assert resp.status_code == 500
        assert resp.json()["detail"]["code"] == "CREDENTIAL_FORMAT_ERROR"

    def test_results_newest_first(self, client, balance_check, result_store) -> None:
        for i, status in enumerate([CheckStatus.SUCCESS, CheckStatus.FAILURE]):
            result_store.insert(CheckResult(
                check_id=balance_check.id, status=status, response_time_ms=10,
                timestamp=NOW + timedelta(minutes=i),
            ))

        resp = client.get(f"/api/checks/{balance_check.id}/results", params={"limit": 10})

        assert resp.status_code == 200
        assert [r["status"] for r in resp.json()["results"]] == ["FAILURE", "SUCCESS"]

    def test_results_unknown_check(self, client) -> None:
        assert client.get("/api/checks/nope/results").status_code == 404

    def test_stats(self, client, balance_check) -> None:
        client.post(f"/api/checks/{balance_check.id}/trigger")
        resp = client.get(f"/api/checks/{balance_check.id}/stats")
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 1
        assert data["success_rate"] == 100.0
        assert len(data["uptime_by_day"]) == 7


class TestCostRoutes:
    def test_connection_costs(self, client, stripe_connection) -> None:
        resp = client.post(f"/api/connections/{stripe_connection.id}/costs")
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["cost_data"]["amount"] == 2.5

    def test_unknown_connection(self, client) -> None:
        assert client.post("/api/connections/nope/costs").status_code == 404

    def test_all_costs(self, client, stripe_connection) -> None:
        resp = client.get("/api/costs")
        assert resp.status_code == 200
        assert resp.json()["totals"] == {"USD": 2.5}
