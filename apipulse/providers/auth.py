"""Provider auth strategy — outbound auth headers per provider.

The provider set is closed: every known provider has its own branch and
anything else falls through to the generic bearer scheme.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
from enum import Enum


class Provider(str, Enum):
    STRIPE = "stripe"
    TWILIO = "twilio"
    SENDGRID = "sendgrid"
    GITHUB = "github"
    SLACK = "slack"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: "Provider | str | None") -> "Provider":
        """Map a provider name to the enum; unknown names become GENERIC."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.GENERIC


def _bearer(secret: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {secret}"} if secret else {}


def _basic(username: str | None, password: str | None) -> dict[str, str]:
    if not username:
        return {}
    raw = f"{username}:{password or ''}".encode("utf-8")
    return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}


def build_auth_headers(
    provider: Provider | str,
    credentials: Mapping[str, str | None],
) -> dict[str, str]:
    """Return the auth headers for ``provider`` given plaintext credentials."""
    provider = Provider.parse(provider)

    if provider in (Provider.STRIPE, Provider.SENDGRID):
        return _bearer(credentials.get("api_key"))
    if provider is Provider.TWILIO:
        return _basic(credentials.get("account_sid"), credentials.get("auth_token"))
    if provider is Provider.GITHUB:
        return {**_bearer(credentials.get("token")), "Accept": "application/vnd.github.v3+json"}
    if provider is Provider.SLACK:
        return _bearer(credentials.get("token"))
    # generic / anything else: api_key wins over token
    return _bearer(credentials.get("api_key") or credentials.get("token"))
