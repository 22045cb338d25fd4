"""Seed loader — syncs connections and checks from a YAML file into the stores.

File format::

    connections:
      - id: stripe-prod
        name: Stripe production
        provider: stripe
        base_url: https://api.stripe.com
        plan: STARTUP              # optional, bounds check intervals
        credentials:
          api_key: ${STRIPE_API_KEY}
        checks:
          - id: stripe-balance
            endpoint: /v1/balance
            expected_status: 200
            timeout_ms: 5000
            interval_seconds: 60

``${VAR}`` references in credentials are expanded from the environment so the
file itself need not hold secrets. Credentials are sealed with the vault
before they reach the store.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from apipulse.monitoring.models import CREDENTIAL_FIELDS, CheckConfig, Connection
from apipulse.monitoring.validation import validate_check_input
from apipulse.storage.checks import CheckStore
from apipulse.storage.connections import ConnectionStore
from apipulse.vault import CredentialVault

logger = logging.getLogger(__name__)

UNSET_VAR = re.compile(r"\$\{([^}]+)\}")


@dataclass
class SeedReport:
    connections_created: int = 0
    connections_updated: int = 0
    checks_created: int = 0
    checks_updated: int = 0


def load_seed_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def _credentials(entry: dict[str, Any]) -> dict[str, str | None]:
    raw = entry.get("credentials") or {}
    unknown = set(raw) - set(CREDENTIAL_FIELDS)
    if unknown:
        raise ValueError(f"Unknown credential fields: {sorted(unknown)}")
    creds = {k: os.path.expandvars(str(v)) if v else None for k, v in raw.items()}
    for name, value in creds.items():
        unresolved = UNSET_VAR.search(value or "")
        if unresolved:
            raise ValueError(f"Environment variable {unresolved.group(1)} is not set (credential {name!r})")
    return creds


def sync_from_config(
    cfg: dict[str, Any],
    connections: ConnectionStore,
    checks: CheckStore,
    vault: CredentialVault,
) -> SeedReport:
    report = SeedReport()

    for entry in cfg.get("connections") or []:
        conn_id = entry["id"]
        sealed = vault.seal_credentials(_credentials(entry))
        fields = {
            "name": entry.get("name", conn_id),
            "provider": entry.get("provider", "generic"),
            "base_url": entry["base_url"],
            "is_active": bool(entry.get("is_active", True)),
            "owner_id": entry.get("owner_id"),
        }

        if connections.find_by_id(conn_id) is None:
            connections.create(Connection(id=conn_id, **fields, **sealed))
            report.connections_created += 1
            logger.info("Created connection: %s (%s)", conn_id, fields["provider"])
        else:
            connections.update(conn_id, **fields, **sealed)
            report.connections_updated += 1
            logger.info("Updated connection: %s", conn_id)

        plan = entry.get("plan")
        for check_cfg in entry.get("checks") or []:
            check_id = check_cfg["id"]
            data = {k: v for k, v in check_cfg.items() if k not in ("id", "is_active")}
            parsed = validate_check_input({**data, "connection_id": conn_id}, plan=plan)
            values = parsed.model_dump(exclude={"connection_id"})
            is_active = bool(check_cfg.get("is_active", True))

            if checks.find_by_id(check_id) is None:
                checks.create(CheckConfig(id=check_id, connection_id=conn_id, is_active=is_active, **values))
                report.checks_created += 1
                logger.info("Created check: %s/%s %s %s", conn_id, check_id, values["method"].value, values["endpoint"])
            else:
                checks.update(check_id, is_active=is_active, **values)
                report.checks_updated += 1
                logger.info("Updated check: %s/%s", conn_id, check_id)

    return report
