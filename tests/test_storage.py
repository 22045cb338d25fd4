"""Tests for the SQLite stores."""

from __future__ import annotations

from datetime import timedelta

import pytest

from apipulse.errors import NotFoundError, StorageError
from apipulse.monitoring.models import CheckConfig, CheckResult, CheckStatus, Connection

from conftest import NOW


class TestConnectionStore:
    def test_credentials_hidden_by_default(self, connection_store, stripe_connection) -> None:
        plain = connection_store.find_by_id(stripe_connection.id)
        full = connection_store.find_by_id_with_credentials(stripe_connection.id)
        assert plain.api_key is None
        assert full.api_key == stripe_connection.api_key
        assert full.provider.value == "stripe"

    def test_set_active(self, connection_store, stripe_connection) -> None:
        connection_store.set_active(stripe_connection.id, False)
        assert connection_store.list_active() == []

    def test_update_unknown(self, connection_store) -> None:
        with pytest.raises(NotFoundError):
            connection_store.update("nope", name="x")

    def test_update_rejects_unknown_field(self, connection_store, stripe_connection) -> None:
        with pytest.raises(ValueError):
            connection_store.update(stripe_connection.id, created_at=NOW)

    def test_repr_hides_credentials(self, stripe_connection) -> None:
        assert stripe_connection.api_key not in repr(stripe_connection)

    def test_duplicate_id(self, connection_store, stripe_connection) -> None:
        with pytest.raises(StorageError):
            connection_store.create(Connection(id=stripe_connection.id, provider="stripe", base_url="https://x"))


class TestCheckStore:
    def test_round_trip(self, check_store, stripe_connection) -> None:
        check_store.create(CheckConfig(
            id="c1", connection_id=stripe_connection.id, endpoint="/v1/charges", method="POST",
            headers={"X-Trace": "1"}, body={"amount": 5}, query_params={"a": "b"},
        ))
        loaded = check_store.find_by_id("c1")
        assert loaded.method.value == "POST"
        assert loaded.headers == {"X-Trace": "1"}
        assert loaded.body == {"amount": 5}
        assert loaded.query_params == {"a": "b"}
        assert loaded.last_executed_at is None

    def test_unknown_connection_rejected(self, check_store) -> None:
        with pytest.raises(StorageError):
            check_store.create(CheckConfig(id="orphan", connection_id="missing", endpoint="/"))

    def test_list_and_delete(self, check_store, balance_check) -> None:
        assert [c.id for c in check_store.list_by_connection(balance_check.connection_id)] == [balance_check.id]
        check_store.delete(balance_check.id)
        assert check_store.find_by_id(balance_check.id) is None
        with pytest.raises(NotFoundError):
            check_store.delete(balance_check.id)

    def test_update_missing(self, check_store) -> None:
        with pytest.raises(NotFoundError, match="Health check"):
            check_store.update("nope", timeout_ms=1000)


class TestResultStore:
    def _insert(self, store, check_id, minutes_ago, status=CheckStatus.SUCCESS):
        return store.insert(CheckResult(
            check_id=check_id, status=status, response_time_ms=5,
            timestamp=NOW - timedelta(minutes=minutes_ago),
        ))

    def test_latest_and_history(self, result_store, balance_check) -> None:
        self._insert(result_store, balance_check.id, 10)
        newest = self._insert(result_store, balance_check.id, 1, CheckStatus.FAILURE)

        assert result_store.get_latest(balance_check.id).id == newest.id
        history = result_store.get_history(balance_check.id)
        assert [r.status for r in history] == [CheckStatus.FAILURE, CheckStatus.SUCCESS]
        assert len(result_store.get_history(balance_check.id, since=NOW - timedelta(minutes=5))) == 1

    def test_cleanup_old(self, result_store, balance_check) -> None:
        self._insert(result_store, balance_check.id, 60 * 24 * 31)
        self._insert(result_store, balance_check.id, 5)

        assert result_store.cleanup_old(days=30, now=NOW) == 1
        assert len(result_store.get_history(balance_check.id)) == 1
