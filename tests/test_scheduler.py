"""Tests for due selection and the check store's due query."""

from __future__ import annotations

from datetime import timedelta

import pytest

from apipulse.monitoring.models import CheckConfig, Connection
from apipulse.monitoring.scheduler import DUE_FLOOR_SECONDS, DueSelector, interval_elapsed, is_due

from conftest import NOW


def _check(last_run_ago: float | None, **kw) -> CheckConfig:
    last = NOW - timedelta(seconds=last_run_ago) if last_run_ago is not None else None
    return CheckConfig(id="c", connection_id="n", last_executed_at=last, **kw)


# ── Pure predicate ───────────────────────────────────────────────────────────


class TestIsDue:
    def test_floor_is_thirty_seconds(self) -> None:
        assert DUE_FLOOR_SECONDS == 30

    @pytest.mark.parametrize("ago, due", [
        (None, True),
        (10, False),
        (30, False),
        (31, True),
        (3600, True),
    ])
    def test_table(self, ago, due) -> None:
        assert is_due(_check(ago), connection_active=True, now=NOW) is due

    def test_inactive_check(self) -> None:
        assert not is_due(_check(None, is_active=False), connection_active=True, now=NOW)

    def test_inactive_connection(self) -> None:
        assert not is_due(_check(None), connection_active=False, now=NOW)


class TestIntervalElapsed:
    def test_never_run(self) -> None:
        assert interval_elapsed(_check(None, interval_seconds=300), NOW)

    def test_inside_interval(self) -> None:
        assert not interval_elapsed(_check(120, interval_seconds=300), NOW)

    def test_exactly_interval(self) -> None:
        assert interval_elapsed(_check(300, interval_seconds=300), NOW)


# ── Store query ──────────────────────────────────────────────────────────────


class TestFindDue:
    def _add(self, check_store, check_id, ago, connection_id="conn-stripe", is_active=True):
        last = NOW - timedelta(seconds=ago) if ago is not None else None
        return check_store.create(CheckConfig(
            id=check_id, connection_id=connection_id, endpoint="/x",
            last_executed_at=last, is_active=is_active,
        ))

    def test_selection(self, check_store, stripe_connection) -> None:
        self._add(check_store, "never", None)
        self._add(check_store, "recent", 10)
        self._add(check_store, "stale", 31)
        self._add(check_store, "paused", None, is_active=False)

        due = DueSelector(check_store).find_due(NOW)

        assert [c.id for c in due] == ["never", "stale"]

    def test_inactive_connection_excluded(self, check_store, connection_store, stripe_connection) -> None:
        connection_store.create(Connection(id="conn-off", provider="github", base_url="https://gh", is_active=False))
        self._add(check_store, "on", None)
        self._add(check_store, "off", None, connection_id="conn-off")

        assert [c.id for c in check_store.find_due(NOW, DUE_FLOOR_SECONDS)] == ["on"]

    def test_oldest_first_after_never_run(self, check_store, stripe_connection) -> None:
        self._add(check_store, "older", 600)
        self._add(check_store, "newer", 60)
        self._add(check_store, "never", None)

        assert [c.id for c in check_store.find_due(NOW, DUE_FLOOR_SECONDS)] == ["never", "older", "newer"]


class TestLastExecutedMonotonic:
    def test_never_moves_backwards(self, check_store, balance_check) -> None:
        check_store.update(balance_check.id, last_executed_at=NOW)
        updated = check_store.update(balance_check.id, last_executed_at=NOW - timedelta(minutes=5))
        assert updated.last_executed_at == NOW

    def test_moves_forwards(self, check_store, balance_check) -> None:
        check_store.update(balance_check.id, last_executed_at=NOW)
        later = NOW + timedelta(minutes=1)
        assert check_store.update(balance_check.id, last_executed_at=later).last_executed_at == later

    def test_first_stamp(self, check_store, balance_check) -> None:
        assert balance_check.last_executed_at is None
        assert check_store.update(balance_check.id, last_executed_at=NOW).last_executed_at == NOW
