"""Connection store. Credential columns only ever hold vault ciphertext."""

from __future__ import annotations

import sqlite3

from apipulse.errors import NotFoundError
from apipulse.monitoring.models import CREDENTIAL_FIELDS, Connection
from apipulse.storage.base import SQLiteStore, from_ts, to_ts

_COLUMNS = ("id", "name", "provider", "base_url", *CREDENTIAL_FIELDS, "is_active", "owner_id", "created_at")
_UPDATABLE = {"name", "provider", "base_url", *CREDENTIAL_FIELDS, "is_active", "owner_id"}


def _row_to_connection(row: sqlite3.Row, with_credentials: bool) -> Connection:
    creds = {f: (row[f] if with_credentials else None) for f in CREDENTIAL_FIELDS}
    return Connection(
        id=row["id"],
        name=row["name"],
        provider=row["provider"],
        base_url=row["base_url"],
        is_active=bool(row["is_active"]),
        owner_id=row["owner_id"],
        created_at=from_ts(row["created_at"]),
        **creds,
    )


class ConnectionStore(SQLiteStore):
    """SQLite-backed storage for tenant connections."""

    def create(self, connection: Connection) -> Connection:
        values = (
            connection.id, connection.name, connection.provider.value, connection.base_url,
            *(getattr(connection, f) for f in CREDENTIAL_FIELDS),
            int(connection.is_active), connection.owner_id, to_ts(connection.created_at),
        )
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._transaction(f"create connection {connection.id}") as conn:
            conn.execute(f"INSERT INTO connections ({', '.join(_COLUMNS)}) VALUES ({placeholders})", values)
        return connection

    def update(self, connection_id: str, **fields: object) -> Connection:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update connection fields: {sorted(unknown)}")
        if "provider" in fields:
            fields["provider"] = getattr(fields["provider"], "value", fields["provider"])
        if "is_active" in fields:
            fields["is_active"] = int(bool(fields["is_active"]))

        if fields:
            assignments = ", ".join(f"{k} = ?" for k in fields)
            with self._transaction(f"update connection {connection_id}") as conn:
                cur = conn.execute(
                    f"UPDATE connections SET {assignments} WHERE id = ?",
                    (*fields.values(), connection_id),
                )
            if cur.rowcount == 0:
                raise NotFoundError("Connection", connection_id)

        updated = self.find_by_id(connection_id)
        if updated is None:
            raise NotFoundError("Connection", connection_id)
        return updated

    def set_active(self, connection_id: str, active: bool) -> Connection:
        return self.update(connection_id, is_active=active)

    def find_by_id(self, connection_id: str) -> Connection | None:
        """Load a connection with its credential columns left empty."""
        rows = self._fetch("SELECT * FROM connections WHERE id = ?", (connection_id,), f"find connection {connection_id}")
        return _row_to_connection(rows[0], with_credentials=False) if rows else None

    def find_by_id_with_credentials(self, connection_id: str) -> Connection | None:
        """Load a connection including its (still encrypted) credentials."""
        rows = self._fetch("SELECT * FROM connections WHERE id = ?", (connection_id,), f"find connection {connection_id}")
        return _row_to_connection(rows[0], with_credentials=True) if rows else None

    def list_active(self) -> list[Connection]:
        rows = self._fetch(
            "SELECT * FROM connections WHERE is_active = 1 ORDER BY created_at",
            (),
            "list active connections",
        )
        return [_row_to_connection(r, with_credentials=False) for r in rows]
