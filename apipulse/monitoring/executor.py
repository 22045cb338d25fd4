"""Probe executor — runs one check against its connection and classifies it.

No HTTP status is treated as exceptional: every response code is an outcome
to classify, and transport failures become TIMEOUT / ERROR results. Nothing
in here raises for a misbehaving target.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import urlencode

import httpx

from apipulse.config import settings
from apipulse.monitoring.models import (
    BODY_METHODS,
    CheckConfig,
    CheckResult,
    CheckStatus,
    DecryptedConnection,
)
from apipulse.providers.auth import build_auth_headers
from apipulse.utils.masking import redact_headers

logger = logging.getLogger(__name__)


def build_url(base_url: str, endpoint: str, query_params: Mapping[str, str] | None = None) -> str:
    """Join base URL and endpoint, then append query params in insertion order."""
    base = base_url[:-1] if base_url.endswith("/") else base_url
    path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
    url = f"{base}{path}"
    if query_params:
        url += "?" + urlencode(list(query_params.items()))
    return url


def merge_headers(headers: dict[str, str], extra: Mapping[str, str]) -> None:
    """Set ``extra`` on ``headers``, replacing names that match case-insensitively."""
    for name, value in extra.items():
        for existing in [k for k in headers if k.lower() == name.lower()]:
            del headers[existing]
        headers[name] = value


def classify(
    status_code: int,
    expected_status: int,
    elapsed_ms: float,
    timeout_ms: int,
) -> CheckStatus:
    """Map a received response plus timing to a CheckStatus."""
    if elapsed_ms >= timeout_ms:
        return CheckStatus.TIMEOUT
    if status_code == expected_status:
        return CheckStatus.SUCCESS
    if status_code >= 500:
        return CheckStatus.ERROR
    return CheckStatus.FAILURE


def error_message_for(status: CheckStatus, status_code: int, reason: str) -> str | None:
    if status is CheckStatus.SUCCESS:
        return None
    if status is CheckStatus.TIMEOUT:
        return "Request timed out"
    label = "Server error" if status is CheckStatus.ERROR else "Unexpected status"
    return f"{label}: {status_code} {reason}".rstrip()


class ProbeExecutor:
    """Stateless HTTP prober. Safe to share between threads.

    ``transport`` and ``clock`` exist for tests: an ``httpx.MockTransport``
    stands in for the network and a fake monotonic clock pins elapsed time.
    """

    def __init__(
        self,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.perf_counter,
        user_agent: str | None = None,
    ) -> None:
        self._transport = transport
        self._clock = clock
        self._user_agent = user_agent or settings.user_agent

    def build_request_headers(self, check: CheckConfig, connection: DecryptedConnection) -> dict[str, str]:
        headers: dict[str, str] = {"User-Agent": self._user_agent}
        merge_headers(headers, check.headers or {})
        merge_headers(headers, build_auth_headers(connection.provider, connection.credentials))
        return headers

    def execute(self, check: CheckConfig, connection: DecryptedConnection) -> CheckResult:
        url = build_url(connection.base_url, check.endpoint, check.query_params)
        method = check.method.value
        headers = self.build_request_headers(check, connection)

        content: str | None = None
        if check.body not in (None, "") and check.method in BODY_METHODS:
            content = check.body if isinstance(check.body, str) else json.dumps(check.body)
            merge_headers(headers, {"Content-Type": "application/json"})

        base_meta: dict[str, Any] = {
            "url": url,
            "method": method,
            "request_headers": redact_headers(headers),
            "user_agent": self._user_agent,
        }

        t0 = self._clock()
        try:
            with httpx.Client(
                timeout=check.timeout_ms / 1000,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                resp = client.request(method, url, headers=headers, content=content)
            elapsed = (self._clock() - t0) * 1000
        except httpx.TimeoutException as e:
            elapsed = (self._clock() - t0) * 1000
            logger.warning("Check %s timed out after %.0fms (%s)", check.id, elapsed, type(e).__name__)
            return CheckResult(
                check_id=check.id,
                status=CheckStatus.TIMEOUT,
                response_time_ms=max(1, round(elapsed)),
                error_message=str(e) or "Request timed out",
                metadata={**base_meta, "error_type": type(e).__name__},
            )
        except Exception as e:
            elapsed = (self._clock() - t0) * 1000
            logger.warning("Check %s transport error: %s: %s", check.id, type(e).__name__, e)
            return CheckResult(
                check_id=check.id,
                status=CheckStatus.ERROR,
                response_time_ms=max(1, round(elapsed)),
                error_message=str(e) or type(e).__name__,
                metadata={**base_meta, "error_type": type(e).__name__},
            )

        response_time = max(1, round(elapsed))
        status = classify(resp.status_code, check.expected_status, elapsed, check.timeout_ms)
        logger.debug("Check %s -> %d in %dms (%s)", check.id, resp.status_code, response_time, status.value)

        return CheckResult(
            check_id=check.id,
            status=status,
            response_time_ms=response_time,
            status_code=resp.status_code,
            error_message=error_message_for(status, resp.status_code, resp.reason_phrase),
            metadata={
                **base_meta,
                "response_headers": dict(resp.headers),
                "response_size": len(resp.content),
            },
        )
