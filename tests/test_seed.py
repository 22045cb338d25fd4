"""Tests for the YAML seed loader."""

from __future__ import annotations

import textwrap

import pytest

from apipulse.errors import ValidationError
from apipulse.monitoring.models import HttpMethod
from apipulse.seed import load_seed_file, sync_from_config

SEED = textwrap.dedent("""
    connections:
      - id: stripe-prod
        name: Stripe production
        provider: stripe
        base_url: https://api.stripe.com
        plan: STARTUP
        credentials:
          api_key: ${SEED_STRIPE_KEY}
        checks:
          - id: stripe-balance
            endpoint: /v1/balance
            interval_seconds: 60
            timeout_ms: 5000
          - id: stripe-charge
            endpoint: /v1/charges
            method: post
            body: '{"amount": 100}'
            expected_status: 201
""")


@pytest.fixture
def seed_file(tmp_path, monkeypatch):
    monkeypatch.setenv("SEED_STRIPE_KEY", "sk_from_env")
    path = tmp_path / "seed.yaml"
    path.write_text(SEED, encoding="utf-8")
    return path


class TestSeed:
    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_seed_file(tmp_path / "nope.yaml")

    def test_creates_connections_and_checks(self, seed_file, connection_store, check_store, vault) -> None:
        report = sync_from_config(load_seed_file(seed_file), connection_store, check_store, vault)

        assert (report.connections_created, report.checks_created) == (1, 2)
        conn = connection_store.find_by_id_with_credentials("stripe-prod")
        assert conn.name == "Stripe production"
        assert conn.api_key != "sk_from_env"
        assert vault.decrypt(conn.api_key) == "sk_from_env"

        charge = check_store.find_by_id("stripe-charge")
        assert charge.method is HttpMethod.POST
        assert charge.body == '{"amount": 100}'
        assert charge.expected_status == 201
        assert check_store.find_by_id("stripe-balance").interval_seconds == 60

    def test_second_sync_updates(self, seed_file, connection_store, check_store, vault) -> None:
        cfg = load_seed_file(seed_file)
        sync_from_config(cfg, connection_store, check_store, vault)
        cfg["connections"][0]["checks"][0]["timeout_ms"] = 2000

        report = sync_from_config(cfg, connection_store, check_store, vault)

        assert (report.connections_created, report.connections_updated) == (0, 1)
        assert (report.checks_created, report.checks_updated) == (0, 2)
        assert check_store.find_by_id("stripe-balance").timeout_ms == 2000

    def test_plan_bounds_interval(self, seed_file, connection_store, check_store, vault) -> None:
        cfg = load_seed_file(seed_file)
        cfg["connections"][0]["plan"] = "HOBBY"
        with pytest.raises(ValidationError):
            sync_from_config(cfg, connection_store, check_store, vault)

    def test_unknown_credential_field(self, connection_store, check_store, vault) -> None:
        cfg = {"connections": [{"id": "x", "base_url": "https://x", "credentials": {"password": "p"}}]}
        with pytest.raises(ValueError, match="password"):
            sync_from_config(cfg, connection_store, check_store, vault)

    def test_unset_environment_variable(self, seed_file, monkeypatch, connection_store, check_store, vault) -> None:
        monkeypatch.delenv("SEED_STRIPE_KEY")
        with pytest.raises(ValueError, match="SEED_STRIPE_KEY is not set"):
            sync_from_config(load_seed_file(seed_file), connection_store, check_store, vault)
        assert connection_store.find_by_id("stripe-prod") is None
