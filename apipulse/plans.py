"""Subscription plan limits.

The smallest ``min_interval`` across plans is the due-selection floor: no
check on any plan may run more often than that.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Plan(str, Enum):
    HOBBY = "HOBBY"
    STARTUP = "STARTUP"
    BUSINESS = "BUSINESS"


@dataclass(frozen=True)
class PlanLimits:
    name: str
    min_interval: int  # seconds
    max_health_checks: int
    max_connections: int


PLAN_LIMITS: dict[Plan, PlanLimits] = {
    Plan.HOBBY: PlanLimits(name="Hobby", min_interval=300, max_health_checks=5, max_connections=3),
    Plan.STARTUP: PlanLimits(name="Startup", min_interval=60, max_health_checks=25, max_connections=10),
    Plan.BUSINESS: PlanLimits(name="Business", min_interval=30, max_health_checks=100, max_connections=50),
}

MINIMUM_PLAN_INTERVAL_SECONDS = min(limits.min_interval for limits in PLAN_LIMITS.values())


def get_plan_limits(plan: Plan | str) -> PlanLimits:
    return PLAN_LIMITS[Plan(plan.upper())]
