"""Due selection — which checks may run now.

``find_due`` is a coarse, interval-agnostic filter: a check is a candidate
once ``DUE_FLOOR_SECONDS`` have passed since its last run. The per-check
interval gate lives in ``interval_elapsed`` and is applied by the service.
Callers polling more often than the floor get overlapping candidate sets.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from apipulse.monitoring.models import CheckConfig, utcnow
from apipulse.plans import MINIMUM_PLAN_INTERVAL_SECONDS
from apipulse.storage.checks import CheckStore

logger = logging.getLogger(__name__)

DUE_FLOOR_SECONDS = MINIMUM_PLAN_INTERVAL_SECONDS


def is_due(
    check: CheckConfig,
    connection_active: bool,
    now: datetime,
    floor_seconds: int = DUE_FLOOR_SECONDS,
) -> bool:
    """Pure form of the due-selection predicate used by the store query."""
    if not (connection_active and check.is_active):
        return False
    if check.last_executed_at is None:
        return True
    return now - check.last_executed_at > timedelta(seconds=floor_seconds)


def interval_elapsed(check: CheckConfig, now: datetime) -> bool:
    """True when the check's own interval has passed since its last run."""
    if check.last_executed_at is None:
        return True
    return now - check.last_executed_at >= timedelta(seconds=check.interval_seconds)


class DueSelector:
    """Finds checks eligible for execution."""

    def __init__(self, check_store: CheckStore, floor_seconds: int = DUE_FLOOR_SECONDS) -> None:
        self.check_store = check_store
        self.floor_seconds = floor_seconds

    def find_due(self, now: datetime | None = None) -> list[CheckConfig]:
        now = now or utcnow()
        due = self.check_store.find_due(now, self.floor_seconds)
        logger.debug("Due selection at %s: %d candidates", now.isoformat(), len(due))
        return due
