"""Append-only check result store."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta

from apipulse.monitoring.models import CheckResult, CheckStatus, utcnow
from apipulse.storage.base import SQLiteStore, dumps, from_ts, loads, to_ts


def _row_to_result(row: sqlite3.Row) -> CheckResult:
    return CheckResult(
        id=row["id"],
        check_id=row["check_id"],
        status=CheckStatus(row["status"]),
        response_time_ms=row["response_time_ms"],
        status_code=row["status_code"],
        error_message=row["error_message"],
        metadata=loads(row["metadata"], {}),
        timestamp=from_ts(row["timestamp"]),
    )


class ResultStore(SQLiteStore):
    """Results are inserted, read, and aged out — never updated."""

    def insert(self, result: CheckResult) -> CheckResult:
        with self._transaction(f"store result for check {result.check_id}") as conn:
            conn.execute(
                "INSERT INTO check_results "
                "(id, check_id, status, response_time_ms, status_code, error_message, metadata, timestamp) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    result.id, result.check_id, result.status.value, result.response_time_ms,
                    result.status_code, result.error_message, dumps(result.metadata),
                    to_ts(result.timestamp),
                ),
            )
        return result

    def get_latest(self, check_id: str) -> CheckResult | None:
        rows = self._fetch(
            "SELECT * FROM check_results WHERE check_id = ? ORDER BY timestamp DESC LIMIT 1",
            (check_id,),
            f"find latest result for check {check_id}",
        )
        return _row_to_result(rows[0]) if rows else None

    def get_history(
        self, check_id: str, limit: int = 100, since: datetime | None = None,
    ) -> list[CheckResult]:
        """Most recent results first."""
        rows = self._fetch(
            "SELECT * FROM check_results WHERE check_id = ? AND timestamp >= ? "
            "ORDER BY timestamp DESC LIMIT ?",
            (check_id, to_ts(since) if since else 0.0, limit),
            f"find results for check {check_id}",
        )
        return [_row_to_result(r) for r in rows]

    def cleanup_old(self, days: int = 30, now: datetime | None = None) -> int:
        """Remove results older than N days."""
        cutoff = (now or utcnow()) - timedelta(days=days)
        with self._transaction("clean up old results") as conn:
            cur = conn.execute("DELETE FROM check_results WHERE timestamp < ?", (to_ts(cutoff),))
        return cur.rowcount
