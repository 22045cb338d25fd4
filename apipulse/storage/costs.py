"""Cost metric store — successful cost-tracking snapshots per connection."""

from __future__ import annotations

from typing import Any

from apipulse.costs.models import CostRecord
from apipulse.monitoring.models import utcnow
from apipulse.storage.base import SQLiteStore, dumps, from_ts, loads, to_ts


class CostMetricStore(SQLiteStore):

    def insert(self, connection_id: str, record: CostRecord) -> int:
        with self._transaction(f"store cost metric for connection {connection_id}") as conn:
            cur = conn.execute(
                "INSERT INTO cost_metrics "
                "(connection_id, provider, amount, currency, period, metadata, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    connection_id, record.provider, record.amount, record.currency,
                    record.period, dumps(record.metadata), to_ts(utcnow()),
                ),
            )
        return int(cur.lastrowid)

    def list_for_connection(self, connection_id: str, limit: int = 50) -> list[dict[str, Any]]:
        rows = self._fetch(
            "SELECT * FROM cost_metrics WHERE connection_id = ? ORDER BY created_at DESC LIMIT ?",
            (connection_id, limit),
            f"list cost metrics for connection {connection_id}",
        )
        return [
            {**dict(r), "metadata": loads(r["metadata"], {}), "created_at": from_ts(r["created_at"]).isoformat()}
            for r in rows
        ]
