"""Redaction of credential-bearing headers before they are stored or logged."""

from __future__ import annotations

from collections.abc import Mapping

# Substring markers, matched case-insensitively against header names.
SENSITIVE_HEADER_MARKERS: tuple[str, ...] = (
    "authorization",
    "api-key",
    "apikey",
    "token",
    "secret",
    "password",
    "cookie",
    "credential",
)


def is_sensitive(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in SENSITIVE_HEADER_MARKERS)


def redact_headers(headers: Mapping[str, str], *, mask: str = "***") -> dict[str, str]:
    """Copy ``headers`` with sensitive values replaced by ``mask``."""
    return {k: (mask if is_sensitive(k) else v) for k, v in headers.items()}
