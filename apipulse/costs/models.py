from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class CostRecord:
    """Billing usage for one provider over one period."""

    provider: str
    amount: float
    currency: str
    period: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CostTrackingResult:
    """Uniform success/failure shape returned by every strategy."""

    success: bool
    cost_data: CostRecord | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"success": self.success}
        if self.cost_data is not None:
            d["cost_data"] = {
                "provider": self.cost_data.provider,
                "amount": self.cost_data.amount,
                "currency": self.cost_data.currency,
                "period": self.cost_data.period,
                "metadata": self.cost_data.metadata,
            }
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass(frozen=True)
class BillingPeriod:
    start: datetime
    end: datetime
    label: str


def current_period(now: datetime | None = None) -> BillingPeriod:
    """First through last calendar day of ``now``'s month, in UTC."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    last_day = calendar.monthrange(now.year, now.month)[1]
    return BillingPeriod(
        start=datetime(now.year, now.month, 1, tzinfo=timezone.utc),
        end=datetime(now.year, now.month, last_day, 23, 59, 59, tzinfo=timezone.utc),
        label=f"{now.year:04d}-{now.month:02d}",
    )
