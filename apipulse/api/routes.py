"""API routes for probing, results and cost tracking.

Endpoints:
  GET  /api/cron/health-checks        — run every due check (external cron)
  POST /api/checks/{id}/trigger       — run one check now
  GET  /api/checks/{id}/results       — result history, newest first
  GET  /api/checks/{id}/stats         — success rate, latency, daily uptime
  POST /api/connections/{id}/costs    — track costs for one connection
  GET  /api/costs                     — track costs for every active connection
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from apipulse.errors import AppError, NotFoundError, ValidationError
from apipulse.monitoring.models import utcnow
from apipulse.monitoring.stats import summarize

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(e: AppError) -> HTTPException:
    if isinstance(e, NotFoundError):
        status = 404
    elif isinstance(e, ValidationError):
        status = 400
    else:
        status = 500
        logger.error("Request failed: %s", e)
    return HTTPException(status_code=status, detail=e.to_dict())


# ── Cron ─────────────────────────────────────────────────────────────────────


@router.get("/cron/health-checks")
def run_health_checks(request: Request) -> dict[str, Any]:
    """Execute every due check. Called by an external scheduler."""
    try:
        report = request.app.state.monitoring.run_due_checks()
    except AppError as e:
        raise _http_error(e) from e
    return {"success": True, **report.to_dict()}


# ── Checks ───────────────────────────────────────────────────────────────────


@router.post("/checks/{check_id}/trigger")
def trigger_check(check_id: str, request: Request) -> dict[str, Any]:
    try:
        result = request.app.state.monitoring.trigger_check(check_id)
    except AppError as e:
        raise _http_error(e) from e
    return result.to_dict()


@router.get("/checks/{check_id}/results")
def check_results(
    check_id: str,
    request: Request,
    limit: int = Query(default=100, ge=1, le=1000),
) -> dict[str, Any]:
    try:
        if request.app.state.checks.find_by_id(check_id) is None:
            raise NotFoundError("Health check", check_id)
        history = request.app.state.results.get_history(check_id, limit=limit)
    except AppError as e:
        raise _http_error(e) from e
    return {"check_id": check_id, "results": [r.to_dict() for r in history]}


@router.get("/checks/{check_id}/stats")
def check_stats(
    check_id: str,
    request: Request,
    days: int = Query(default=7, ge=1, le=90),
) -> dict[str, Any]:
    now = utcnow()
    try:
        if request.app.state.checks.find_by_id(check_id) is None:
            raise NotFoundError("Health check", check_id)
        history = request.app.state.results.get_history(
            check_id, limit=10_000, since=now - timedelta(days=days),
        )
    except AppError as e:
        raise _http_error(e) from e
    return {"check_id": check_id, "days": days, **summarize(history, now=now)}


# ── Costs ────────────────────────────────────────────────────────────────────


@router.post("/connections/{connection_id}/costs")
def track_connection_costs(connection_id: str, request: Request) -> dict[str, Any]:
    try:
        if request.app.state.connections.find_by_id(connection_id) is None:
            raise NotFoundError("Connection", connection_id)
    except AppError as e:
        raise _http_error(e) from e
    result = request.app.state.costs.track_costs_for_connection(connection_id)
    return {"connection_id": connection_id, **result.to_dict()}


@router.get("/costs")
def track_all_costs(request: Request) -> dict[str, Any]:
    try:
        summary = request.app.state.costs.track_all_active()
    except AppError as e:
        raise _http_error(e) from e
    return summary.to_dict()
