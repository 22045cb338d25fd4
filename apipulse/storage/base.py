"""Shared SQLite plumbing for the stores.

All stores open the same database file and run the same schema, so foreign
keys between connections, checks, results and cost metrics hold no matter
which store touched the file first.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from apipulse.config import settings
from apipulse.errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS connections (
        id          TEXT PRIMARY KEY,
        name        TEXT NOT NULL DEFAULT '',
        provider    TEXT NOT NULL,
        base_url    TEXT NOT NULL,
        api_key     TEXT,
        secret_key  TEXT,
        account_sid TEXT,
        auth_token  TEXT,
        token       TEXT,
        is_active   INTEGER NOT NULL DEFAULT 1,
        owner_id    TEXT,
        created_at  REAL NOT NULL
    );

    CREATE TABLE IF NOT EXISTS checks (
        id               TEXT PRIMARY KEY,
        connection_id    TEXT NOT NULL REFERENCES connections (id) ON DELETE CASCADE,
        endpoint         TEXT NOT NULL,
        method           TEXT NOT NULL DEFAULT 'GET',
        expected_status  INTEGER NOT NULL DEFAULT 200,
        timeout_ms       INTEGER NOT NULL,
        interval_seconds INTEGER NOT NULL,
        headers          TEXT NOT NULL DEFAULT '{}',
        body             TEXT,
        query_params     TEXT NOT NULL DEFAULT '{}',
        is_active        INTEGER NOT NULL DEFAULT 1,
        last_executed_at REAL,
        created_at       REAL NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_checks_due
        ON checks (is_active, last_executed_at);

    CREATE TABLE IF NOT EXISTS check_results (
        id               TEXT PRIMARY KEY,
        check_id         TEXT NOT NULL REFERENCES checks (id) ON DELETE CASCADE,
        status           TEXT NOT NULL,
        response_time_ms INTEGER NOT NULL,
        status_code      INTEGER,
        error_message    TEXT,
        metadata         TEXT NOT NULL DEFAULT '{}',
        timestamp        REAL NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_results_check
        ON check_results (check_id, timestamp DESC);

    CREATE TABLE IF NOT EXISTS cost_metrics (
        id            INTEGER PRIMARY KEY AUTOINCREMENT,
        connection_id TEXT NOT NULL REFERENCES connections (id) ON DELETE CASCADE,
        provider      TEXT NOT NULL,
        amount        REAL NOT NULL,
        currency      TEXT NOT NULL,
        period        TEXT NOT NULL,
        metadata      TEXT NOT NULL DEFAULT '{}',
        created_at    REAL NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_costs_connection
        ON cost_metrics (connection_id, created_at DESC);
"""


def to_ts(value: datetime | None) -> float | None:
    return value.timestamp() if value is not None else None


def from_ts(value: float | None) -> datetime | None:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value is not None else None


def dumps(value: Any) -> str:
    return json.dumps(value if value is not None else {})


def loads(raw: str | None, default: Any = None) -> Any:
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Discarding undecodable JSON column: %.60r", raw)
        return default


class SQLiteStore:
    """One lazily-opened connection per store, guarded by a lock."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = Path(db_path or settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
        return self._conn

    def _init_db(self) -> None:
        with self._transaction("initialise schema") as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        """Run a block of statements atomically; wrap sqlite errors."""
        with self._lock:
            conn = self._get_conn()
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageError(f"Failed to {action}: {e}") from e

    def _fetch(self, sql: str, params: tuple[Any, ...], action: str) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._get_conn().execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to {action}: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
