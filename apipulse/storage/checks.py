"""Check configuration store."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from apipulse.errors import NotFoundError
from apipulse.monitoring.models import CheckConfig
from apipulse.storage.base import SQLiteStore, dumps, from_ts, loads, to_ts

_UPDATABLE = {
    "endpoint", "method", "expected_status", "timeout_ms", "interval_seconds",
    "headers", "body", "query_params", "is_active", "last_executed_at",
}
_JSON_FIELDS = {"headers", "query_params"}


def _row_to_check(row: sqlite3.Row) -> CheckConfig:
    return CheckConfig(
        id=row["id"],
        connection_id=row["connection_id"],
        endpoint=row["endpoint"],
        method=row["method"],
        expected_status=row["expected_status"],
        timeout_ms=row["timeout_ms"],
        interval_seconds=row["interval_seconds"],
        headers=loads(row["headers"], {}),
        body=loads(row["body"]),
        query_params=loads(row["query_params"], {}),
        is_active=bool(row["is_active"]),
        last_executed_at=from_ts(row["last_executed_at"]),
        created_at=from_ts(row["created_at"]),
    )


def _encode(field: str, value: object) -> object:
    if field in _JSON_FIELDS:
        return dumps(value)
    if field == "body":
        return dumps(value) if value is not None else None
    if field == "method":
        return getattr(value, "value", value)
    if field == "is_active":
        return int(bool(value))
    if isinstance(value, datetime):
        return to_ts(value)
    return value


class CheckStore(SQLiteStore):
    """SQLite-backed storage for check configurations."""

    def create(self, check: CheckConfig) -> CheckConfig:
        with self._transaction(f"create check {check.id}") as conn:
            conn.execute(
                "INSERT INTO checks "
                "(id, connection_id, endpoint, method, expected_status, timeout_ms, interval_seconds, "
                "headers, body, query_params, is_active, last_executed_at, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    check.id, check.connection_id, check.endpoint, check.method.value,
                    check.expected_status, check.timeout_ms, check.interval_seconds,
                    dumps(check.headers), _encode("body", check.body), dumps(check.query_params),
                    int(check.is_active), to_ts(check.last_executed_at), to_ts(check.created_at),
                ),
            )
        return check

    def find_by_id(self, check_id: str) -> CheckConfig | None:
        rows = self._fetch("SELECT * FROM checks WHERE id = ?", (check_id,), f"find check {check_id}")
        return _row_to_check(rows[0]) if rows else None

    def find_due(self, now: datetime, floor_seconds: int) -> list[CheckConfig]:
        """Active checks on active connections, never run or idle past the floor."""
        cutoff = now.timestamp() - floor_seconds
        rows = self._fetch(
            "SELECT c.* FROM checks c "
            "JOIN connections n ON n.id = c.connection_id "
            "WHERE c.is_active = 1 AND n.is_active = 1 "
            "AND (c.last_executed_at IS NULL OR c.last_executed_at < ?) "
            "ORDER BY c.last_executed_at IS NOT NULL, c.last_executed_at ASC",
            (cutoff,),
            "find checks due for execution",
        )
        return [_row_to_check(r) for r in rows]

    def list_by_connection(self, connection_id: str) -> list[CheckConfig]:
        rows = self._fetch(
            "SELECT * FROM checks WHERE connection_id = ? ORDER BY created_at DESC",
            (connection_id,),
            f"list checks for connection {connection_id}",
        )
        return [_row_to_check(r) for r in rows]

    def update(self, check_id: str, **fields: object) -> CheckConfig:
        """Update columns of a check. ``last_executed_at`` never moves backwards."""
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update check fields: {sorted(unknown)}")

        assignments: list[str] = []
        params: list[object] = []
        for name, value in fields.items():
            if name == "last_executed_at" and value is not None:
                assignments.append("last_executed_at = MAX(COALESCE(last_executed_at, ?), ?)")
                params.extend((to_ts(value), to_ts(value)))
            else:
                assignments.append(f"{name} = ?")
                params.append(_encode(name, value))

        if assignments:
            with self._transaction(f"update check {check_id}") as conn:
                cur = conn.execute(
                    f"UPDATE checks SET {', '.join(assignments)} WHERE id = ?",
                    (*params, check_id),
                )
            if cur.rowcount == 0:
                raise NotFoundError("Health check", check_id)

        updated = self.find_by_id(check_id)
        if updated is None:
            raise NotFoundError("Health check", check_id)
        return updated

    def delete(self, check_id: str) -> None:
        with self._transaction(f"delete check {check_id}") as conn:
            cur = conn.execute("DELETE FROM checks WHERE id = ?", (check_id,))
        if cur.rowcount == 0:
            raise NotFoundError("Health check", check_id)
