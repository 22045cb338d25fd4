"""Monitoring service — ties due selection, credentials, probing and storage.

Both entry points run the same pipeline per check:

    load check -> load connection -> decrypt -> probe -> store result -> stamp last run

A bad probe outcome is data, not an exception. Load, vault and storage errors
do raise; in a batch they are caught per check so the rest of the batch runs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from apipulse.config import settings
from apipulse.errors import NotFoundError
from apipulse.monitoring.executor import ProbeExecutor
from apipulse.monitoring.models import CheckConfig, CheckResult, CheckStatus, DecryptedConnection, utcnow
from apipulse.monitoring.scheduler import DueSelector, interval_elapsed
from apipulse.storage.checks import CheckStore
from apipulse.storage.connections import ConnectionStore
from apipulse.storage.results import ResultStore
from apipulse.vault import CredentialVault

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """Summary of one ``run_due_checks`` pass."""

    timestamp: datetime
    total_due: int = 0
    ready: int = 0
    skipped: int = 0
    results: list[CheckResult] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def executed(self) -> int:
        return len(self.results) + len(self.errors)

    @property
    def successful(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def status_breakdown(self) -> dict[str, int]:
        counts = {s.value: 0 for s in CheckStatus}
        for r in self.results:
            counts[r.status.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "total_due": self.total_due,
            "ready": self.ready,
            "skipped": self.skipped,
            "executed": self.executed,
            "successful": self.successful,
            "failed": self.failed,
            "statuses": self.status_breakdown(),
            "errors": self.errors,
        }


class MonitoringService:
    """Runs checks on demand or in batches for an external time source."""

    def __init__(
        self,
        connections: ConnectionStore,
        checks: CheckStore,
        results: ResultStore,
        vault: CredentialVault,
        executor: ProbeExecutor | None = None,
        selector: DueSelector | None = None,
        max_workers: int | None = None,
        enforce_interval: bool | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.connections = connections
        self.checks = checks
        self.results = results
        self.vault = vault
        self.executor = executor or ProbeExecutor()
        self.selector = selector or DueSelector(checks)
        self.max_workers = max_workers or settings.probe_workers
        self.enforce_interval = settings.enforce_check_interval if enforce_interval is None else enforce_interval
        self._clock = clock

    # ── Single check ─────────────────────────────────────────────────────

    def trigger_check(self, check_id: str) -> CheckResult:
        """Run one check now, regardless of its interval."""
        check = self.checks.find_by_id(check_id)
        if check is None:
            raise NotFoundError("Health check", check_id)
        return self.execute_check(check)

    def execute_check(self, check: CheckConfig) -> CheckResult:
        connection = self._open_connection(check)
        result = self.executor.execute(check, connection)
        self.results.insert(result)
        self.checks.update(check.id, last_executed_at=self._clock())
        logger.info(
            "Check %s [%s %s] -> %s (%dms)",
            check.id, check.method.value, check.endpoint, result.status.value, result.response_time_ms,
        )
        return result

    def _open_connection(self, check: CheckConfig) -> DecryptedConnection:
        connection = self.connections.find_by_id_with_credentials(check.connection_id)
        if connection is None:
            raise NotFoundError("Connection", check.connection_id)
        return DecryptedConnection.open(connection, self.vault)

    # ── Batch ────────────────────────────────────────────────────────────

    def find_due(self, now: datetime | None = None) -> list[CheckConfig]:
        return self.selector.find_due(now or self._clock())

    def run_due_checks(self, now: datetime | None = None) -> BatchReport:
        """Run every due check concurrently and wait for the whole batch."""
        now = now or self._clock()
        due = self.find_due(now)
        ready = [c for c in due if interval_elapsed(c, now)] if self.enforce_interval else due

        report = BatchReport(timestamp=now, total_due=len(due), ready=len(ready), skipped=len(due) - len(ready))
        logger.info("Health checks execution status: due=%d ready=%d", report.total_due, report.ready)
        if not ready:
            return report

        workers = max(1, min(self.max_workers, len(ready)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe") as pool:
            futures = {pool.submit(self.execute_check, check): check for check in ready}
            for future in as_completed(futures):
                check = futures[future]
                try:
                    report.results.append(future.result())
                except Exception as e:
                    report.errors[check.id] = str(e)
                    logger.error("Check %s aborted: %s: %s", check.id, type(e).__name__, e)

        logger.info(
            "Health checks execution completed: successful=%d failed=%d", report.successful, report.failed,
        )
        return report
