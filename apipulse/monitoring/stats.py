"""Aggregates over stored check results (dashboards, alert rules)."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from apipulse.monitoring.models import CheckResult, CheckStatus


def status_counts(results: Sequence[CheckResult]) -> dict[str, int]:
    return dict(Counter(r.status.value for r in results))


def success_rate(results: Sequence[CheckResult]) -> float:
    """Percentage of SUCCESS results; 0 when there are none."""
    if not results:
        return 0.0
    ok = sum(1 for r in results if r.status is CheckStatus.SUCCESS)
    return round(ok / len(results) * 100, 1)


def average_response_time(results: Sequence[CheckResult]) -> float:
    if not results:
        return 0.0
    return round(sum(r.response_time_ms for r in results) / len(results), 1)


def uptime_by_day(
    results: Sequence[CheckResult],
    days: int = 7,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Daily uptime (UTC days), oldest first. A day with no data counts as 100%."""
    now = now or datetime.now(timezone.utc)
    today = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    out = []
    for offset in range(days - 1, -1, -1):
        start = today - timedelta(days=offset)
        end = start + timedelta(days=1)
        day = [r for r in results if start <= r.timestamp < end]
        ok = sum(1 for r in day if r.status is CheckStatus.SUCCESS)
        out.append({
            "date": start.date().isoformat(),
            "total": len(day),
            "successful": ok,
            "uptime": round(ok / len(day) * 100, 1) if day else 100.0,
        })
    return out


def summarize(results: Sequence[CheckResult], now: datetime | None = None) -> dict[str, Any]:
    return {
        "count": len(results),
        "status_counts": status_counts(results),
        "success_rate": success_rate(results),
        "average_response_time_ms": average_response_time(results),
        "uptime_by_day": uptime_by_day(results, now=now),
    }
