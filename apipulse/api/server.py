"""FastAPI application — cron trigger, manual checks, results and costs."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from apipulse import __version__
from apipulse.api.routes import router
from apipulse.config import settings
from apipulse.costs.service import CostTrackingService
from apipulse.monitoring.service import MonitoringService
from apipulse.storage import CheckStore, ConnectionStore, CostMetricStore, ResultStore
from apipulse.vault import CredentialVault

logger = logging.getLogger(__name__)

CRON_PREFIX = "/api/cron"


# ── Auth middleware ───────────────────────────────────────────────────────────


class CronTokenMiddleware(BaseHTTPMiddleware):
    """Reject cron requests missing or having an invalid X-Cron-Token header."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        token = settings.cron_token
        if not token or not request.url.path.startswith(CRON_PREFIX):
            return await call_next(request)

        provided = request.headers.get("X-Cron-Token", "")
        if provided != token:
            logger.warning("Rejected cron request from %s", request.client.host if request.client else "?")
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid or missing X-Cron-Token"},
            )

        return await call_next(request)


# ── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores and build the services on startup."""
    # Fails here rather than on the first decrypt when the key is missing
    vault = CredentialVault(settings.encryption_key)

    connections = ConnectionStore()
    checks = CheckStore()
    results = ResultStore()
    metrics = CostMetricStore()

    app.state.connections = connections
    app.state.checks = checks
    app.state.results = results
    app.state.monitoring = MonitoringService(connections, checks, results, vault)
    app.state.costs = CostTrackingService(connections, vault, metrics=metrics)
    logger.info("API Pulse ready (db=%s, workers=%d)", settings.database_path, settings.probe_workers)

    yield

    for store in (connections, checks, results, metrics):
        store.close()


# ── App factory ──────────────────────────────────────────────────────────────


def create_app() -> FastAPI:
    app = FastAPI(
        title="API Pulse — Third-party API Monitor",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(CronTokenMiddleware)
    app.include_router(router, prefix="/api")

    return app


app = create_app()
