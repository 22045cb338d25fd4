"""Data model for connections, check configurations, and check results."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from apipulse.providers.auth import Provider

if TYPE_CHECKING:
    from apipulse.vault import CredentialVault

# Credential columns on a connection. Which ones are set depends on the provider.
CREDENTIAL_FIELDS = ("api_key", "secret_key", "account_sid", "auth_token", "token")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    TIMEOUT = "TIMEOUT"
    ERROR = "ERROR"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


BODY_METHODS = (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)


@dataclass
class Connection:
    """A tenant's target API. Credential fields hold vault ciphertext."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str = ""
    provider: Provider = Provider.GENERIC
    base_url: str = ""
    api_key: str | None = None
    secret_key: str | None = None
    account_sid: str | None = None
    auth_token: str | None = None
    token: str | None = None
    is_active: bool = True
    owner_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.provider = Provider.parse(self.provider)

    def credentials(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in CREDENTIAL_FIELDS}

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, name={self.name!r}, provider={self.provider.value!r})"


@dataclass(frozen=True)
class DecryptedConnection:
    """Connection with plaintext credentials — lives for one probe only."""

    id: str
    name: str
    provider: Provider
    base_url: str
    credentials: dict[str, str | None] = field(default_factory=dict, repr=False)

    @classmethod
    def open(cls, connection: Connection, vault: CredentialVault) -> "DecryptedConnection":
        """Decrypt ``connection``'s credentials; vault errors propagate."""
        return cls(
            id=connection.id,
            name=connection.name,
            provider=connection.provider,
            base_url=connection.base_url,
            credentials=vault.open_credentials(connection.credentials()),
        )


@dataclass
class CheckConfig:
    """One monitored endpoint/method/expectation definition."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    connection_id: str = ""
    endpoint: str = "/"
    method: HttpMethod = HttpMethod.GET
    expected_status: int = 200
    timeout_ms: int = 30_000
    interval_seconds: int = 300
    headers: dict[str, str] = field(default_factory=dict)
    body: str | dict[str, Any] | list[Any] | None = None
    query_params: dict[str, str] = field(default_factory=dict)
    is_active: bool = True
    last_executed_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.method = HttpMethod(self.method.upper())


@dataclass(frozen=True)
class CheckResult:
    """Immutable outcome of a single probe."""

    check_id: str
    status: CheckStatus
    response_time_ms: int
    status_code: int | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: f"result_{uuid.uuid4().hex}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "check_id": self.check_id,
            "status": self.status.value,
            "response_time_ms": self.response_time_ms,
            "status_code": self.status_code,
            "error_message": self.error_message,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }
