"""Cost-tracking service — decrypts a connection and runs its strategy.

Never raises for a single connection: lookup, vault, and provider failures
all come back as failure results.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from apipulse.costs.models import CostTrackingResult
from apipulse.costs.strategies import CostTrackingStrategy, strategy_for
from apipulse.errors import AppError, NotFoundError
from apipulse.monitoring.models import DecryptedConnection
from apipulse.providers.auth import Provider
from apipulse.storage.connections import ConnectionStore
from apipulse.storage.costs import CostMetricStore
from apipulse.vault import CredentialVault

logger = logging.getLogger(__name__)


@dataclass
class CostSummary:
    results: dict[str, CostTrackingResult] = field(default_factory=dict)

    def totals(self) -> dict[str, float]:
        """Amounts of successful results, summed per currency."""
        sums: dict[str, float] = defaultdict(float)
        for r in self.results.values():
            if r.success and r.cost_data is not None:
                sums[r.cost_data.currency] += r.cost_data.amount
        return dict(sums)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totals": self.totals(),
            "connections": {cid: r.to_dict() for cid, r in self.results.items()},
            "failed": sorted(cid for cid, r in self.results.items() if not r.success),
        }


class CostTrackingService:

    def __init__(
        self,
        connections: ConnectionStore,
        vault: CredentialVault,
        metrics: CostMetricStore | None = None,
        strategy_factory: Callable[[Provider], CostTrackingStrategy] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.connections = connections
        self.vault = vault
        self.metrics = metrics
        self._strategy_factory = strategy_factory or (lambda p: strategy_for(p, transport=transport))

    def track_costs_for_connection(self, connection_id: str) -> CostTrackingResult:
        try:
            connection = self.connections.find_by_id_with_credentials(connection_id)
            if connection is None:
                raise NotFoundError("Connection", connection_id)
            opened = DecryptedConnection.open(connection, self.vault)
        except AppError as e:
            logger.warning("Cost tracking skipped for %s: %s", connection_id, e)
            return CostTrackingResult(success=False, error=str(e))

        result = self._strategy_factory(opened.provider).track_costs(opened.credentials)

        if result.success and result.cost_data is not None and self.metrics is not None:
            try:
                self.metrics.insert(connection_id, result.cost_data)
            except AppError as e:
                logger.error("Failed to store cost metric for %s: %s", connection_id, e)
        return result

    def track_all_active(self) -> CostSummary:
        summary = CostSummary()
        for connection in self.connections.list_active():
            summary.results[connection.id] = self.track_costs_for_connection(connection.id)
        logger.info(
            "Cost tracking finished for %d connections (%d failed)",
            len(summary.results), sum(1 for r in summary.results.values() if not r.success),
        )
        return summary
