"""Cost-tracking strategies — per-provider billing usage for the current month.

Every strategy returns a CostTrackingResult. Transport, HTTP and parse
problems are folded into a failure result so that aggregating costs over many
connections never stops on one provider.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import httpx

from apipulse.config import settings
from apipulse.costs.models import BillingPeriod, CostRecord, CostTrackingResult, current_period
from apipulse.providers.auth import Provider

logger = logging.getLogger(__name__)

Credentials = Mapping[str, str | None]

MAX_PAGES = 50  # hard stop for paginated listings


class MissingCredentialsError(Exception):
    """Raised inside a strategy when the needed credentials are absent."""


class CostTrackingStrategy(ABC):
    """Base class: subclasses implement ``_fetch``; ``track_costs`` never raises."""

    provider: str = ""
    currency = "USD"

    def __init__(self, transport: httpx.BaseTransport | None = None, timeout: float | None = None) -> None:
        self._transport = transport
        self._timeout = timeout or settings.cost_request_timeout

    def track_costs(self, credentials: Credentials, now: datetime | None = None) -> CostTrackingResult:
        period = current_period(now)
        try:
            amount, metadata = self._fetch(credentials, period)
        except Exception as e:
            logger.warning("%s cost tracking failed: %s: %s", self.provider, type(e).__name__, e)
            return self._failure(e)
        logger.info("%s costs for %s: %.2f %s", self.provider, period.label, amount, self.currency)
        return self._success(amount, period.label, metadata)

    @abstractmethod
    def _fetch(self, credentials: Credentials, period: BillingPeriod) -> tuple[float, dict[str, Any]]:
        """Return (amount in major units, metadata) or raise."""

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def _success(self, amount: float, period: str, metadata: dict[str, Any]) -> CostTrackingResult:
        return CostTrackingResult(
            success=True,
            cost_data=CostRecord(
                provider=self.provider,
                amount=amount,
                currency=self.currency,
                period=period,
                metadata=metadata,
            ),
        )

    def _failure(self, error: Exception) -> CostTrackingResult:
        detail = str(error) or type(error).__name__
        return CostTrackingResult(success=False, error=f"{self.provider} cost tracking failed: {detail}")


class StripeCostTrackingStrategy(CostTrackingStrategy):
    """Sums balance-transaction fees (minor units) for the month."""

    provider = Provider.STRIPE.value

    def __init__(self, transport: httpx.BaseTransport | None = None, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(transport, **kwargs)
        self._base_url = (base_url or settings.stripe_api_base).rstrip("/")

    def _fetch(self, credentials: Credentials, period: BillingPeriod) -> tuple[float, dict[str, Any]]:
        secret = credentials.get("secret_key") or credentials.get("api_key")
        if not secret:
            raise MissingCredentialsError("Stripe secret key not configured")

        params: dict[str, Any] = {
            "created[gte]": int(period.start.timestamp()),
            "created[lte]": int(period.end.timestamp()),
            "limit": 100,
        }
        total_fees = 0
        count = 0
        pages = 0
        more = False

        with self._client() as client:
            while pages < MAX_PAGES:
                resp = client.get(
                    f"{self._base_url}/v1/balance_transactions",
                    params=params,
                    headers={"Authorization": f"Bearer {secret}"},
                )
                resp.raise_for_status()
                payload = resp.json()
                pages += 1

                transactions = payload.get("data") or []
                total_fees += sum(int(tx.get("fee") or 0) for tx in transactions)
                count += len(transactions)

                more = bool(payload.get("has_more") and transactions)
                if not more:
                    break
                params["starting_after"] = transactions[-1]["id"]

        metadata: dict[str, Any] = {"transaction_count": count, "total_fees": total_fees, "pages": pages}
        if more:
            logger.warning("Stripe balance transactions truncated after %d pages", pages)
            metadata["truncated"] = True
        return total_fees / 100, metadata


class TwilioCostTrackingStrategy(CostTrackingStrategy):
    """Sums usage-record prices for the month."""

    provider = Provider.TWILIO.value

    def __init__(self, transport: httpx.BaseTransport | None = None, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(transport, **kwargs)
        self._base_url = (base_url or settings.twilio_api_base).rstrip("/")

    def _fetch(self, credentials: Credentials, period: BillingPeriod) -> tuple[float, dict[str, Any]]:
        sid = credentials.get("account_sid")
        token = credentials.get("auth_token")
        if not (sid and token):
            raise MissingCredentialsError("Twilio credentials not configured")

        url: str | None = f"{self._base_url}/2010-04-01/Accounts/{sid}/Usage/Records.json"
        params: dict[str, str] | None = {
            "StartDate": period.start.date().isoformat(),
            "EndDate": period.end.date().isoformat(),
        }
        total = 0.0
        count = 0
        pages = 0

        with self._client() as client:
            while url and pages < MAX_PAGES:
                resp = client.get(url, params=params, auth=(sid, token))
                resp.raise_for_status()
                payload = resp.json()
                pages += 1

                records = payload.get("usage_records") or []
                total += sum(float(r.get("price") or 0) for r in records)
                count += len(records)

                next_uri = payload.get("next_page_uri")
                url = f"{self._base_url}{next_uri}" if next_uri else None
                params = None  # next_page_uri already carries the query

        metadata: dict[str, Any] = {"usage_count": count, "pages": pages}
        if url:
            logger.warning("Twilio usage records truncated after %d pages", pages)
            metadata["truncated"] = True
        return round(total, 6), metadata


class NoCostTrackingStrategy(CostTrackingStrategy):
    """Explicit non-support: zero amount, annotated, always successful."""

    def __init__(self, provider: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.provider = provider

    def _fetch(self, credentials: Credentials, period: BillingPeriod) -> tuple[float, dict[str, Any]]:
        return 0, {"note": f"{self.provider} cost tracking not implemented"}


def strategy_for(
    provider: Provider | str,
    transport: httpx.BaseTransport | None = None,
) -> CostTrackingStrategy:
    """Pick the strategy for a provider. Unknown providers get the no-op."""
    provider = Provider.parse(provider)
    if provider is Provider.STRIPE:
        return StripeCostTrackingStrategy(transport=transport)
    if provider is Provider.TWILIO:
        return TwilioCostTrackingStrategy(transport=transport)
    return NoCostTrackingStrategy(provider.value, transport=transport)
