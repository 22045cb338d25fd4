"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import pytest

from apipulse.monitoring.models import CheckConfig, Connection
from apipulse.storage import CheckStore, ConnectionStore, CostMetricStore, ResultStore
from apipulse.vault import CredentialVault

TEST_KEY = "0123456789abcdef0123456789abcdef"

NOW = datetime(2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock that returns scripted readings, repeating the last one."""

    def __init__(self, *readings: float) -> None:
        self._readings = list(readings) or [0.0]

    def __call__(self) -> float:
        if len(self._readings) > 1:
            return self._readings.pop(0)
        return self._readings[0]


def elapsed_clock(ms: float) -> FakeClock:
    """Clock whose second reading is ``ms`` milliseconds after the first."""
    return FakeClock(100.0, 100.0 + ms / 1000)


def mock_transport(
    status: int = 200,
    json: object | None = None,
    headers: dict[str, str] | None = None,
    seen: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Transport answering every request with one canned response."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=json if json is not None else {}, headers=headers)

    return httpx.MockTransport(handler)


def raising_transport(exc_factory: Callable[[httpx.Request], Exception]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_factory(request)

    return httpx.MockTransport(handler)


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(TEST_KEY)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "apipulse.db"


@pytest.fixture
def connection_store(db_path) -> ConnectionStore:
    return ConnectionStore(db_path=db_path)


@pytest.fixture
def check_store(db_path) -> CheckStore:
    return CheckStore(db_path=db_path)


@pytest.fixture
def result_store(db_path) -> ResultStore:
    return ResultStore(db_path=db_path)


@pytest.fixture
def cost_store(db_path) -> CostMetricStore:
    return CostMetricStore(db_path=db_path)


@pytest.fixture
def stripe_connection(connection_store, vault) -> Connection:
    """An active Stripe connection with an encrypted API key, already stored."""
    conn = Connection(
        id="conn-stripe",
        name="Stripe prod",
        provider="stripe",
        base_url="https://api.stripe.test/",
        api_key=vault.encrypt("sk_test_secret"),
    )
    return connection_store.create(conn)


@pytest.fixture
def balance_check(check_store, stripe_connection) -> CheckConfig:
    check = CheckConfig(
        id="chk-balance",
        connection_id=stripe_connection.id,
        endpoint="/v1/balance",
        expected_status=200,
        timeout_ms=5000,
        interval_seconds=60,
    )
    return check_store.create(check)
