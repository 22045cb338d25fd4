"""Credential vault — AES-256-GCM encryption for tenant secrets.

Ciphertext layout is ``hex(nonce):hex(tag):hex(payload)``. Every call to
``encrypt`` draws a fresh nonce, so equal plaintexts never produce equal
ciphertexts. The key is passed in explicitly; a missing or mis-sized key
fails at construction, never at first use.
"""

from __future__ import annotations

import os
import secrets
import string
from collections.abc import Mapping

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from apipulse.errors import AppError


KEY_SIZE = 32
NONCE_SIZE = 16
TAG_SIZE = 16
DELIMITER = ":"
AAD = b"api-pulse"


class VaultError(AppError):
    """Base class for credential vault failures."""

    code = "VAULT_ERROR"


class VaultConfigError(VaultError):
    """Raised when the vault key is missing or has the wrong size."""

    code = "VAULT_CONFIG_ERROR"


class CredentialFormatError(VaultError):
    """Raised when a ciphertext is structurally malformed."""

    code = "CREDENTIAL_FORMAT_ERROR"


class CredentialDecryptionError(VaultError):
    """Raised when the authentication tag does not verify."""

    code = "CREDENTIAL_DECRYPTION_ERROR"


def _coerce_key(key: str | bytes | None) -> bytes:
    if not key:
        raise VaultConfigError("ENCRYPTION_KEY is not set")
    raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    if len(raw) != KEY_SIZE:
        raise VaultConfigError(f"ENCRYPTION_KEY must be exactly {KEY_SIZE} bytes long (got {len(raw)})")
    return raw


def generate_key() -> str:
    """Return a random 32-character key suitable for ENCRYPTION_KEY."""
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(KEY_SIZE))


class CredentialVault:
    """Symmetric authenticated encryption for credential fields."""

    def __init__(self, key: str | bytes | None) -> None:
        self._aead = AESGCM(_coerce_key(key))

    def __repr__(self) -> str:
        return "CredentialVault(key=***)"

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), AAD)
        payload, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return DELIMITER.join((nonce.hex(), tag.hex(), payload.hex()))

    def decrypt(self, ciphertext: str) -> str:
        parts = ciphertext.split(DELIMITER)
        if len(parts) != 3:
            raise CredentialFormatError("Invalid encrypted text format")

        try:
            nonce, tag, payload = (bytes.fromhex(p) for p in parts)
        except ValueError as e:
            raise CredentialFormatError(f"Invalid encrypted text encoding: {e}") from e

        if len(tag) != TAG_SIZE or not nonce:
            raise CredentialFormatError("Invalid encrypted text format")

        try:
            plaintext = self._aead.decrypt(nonce, payload + tag, AAD)
        except InvalidTag as e:
            raise CredentialDecryptionError("Credential authentication failed") from e
        except ValueError as e:  # nonce length outside what AES-GCM accepts
            raise CredentialFormatError(f"Invalid encrypted text format: {e}") from e
        return plaintext.decode("utf-8")

    # ── Optional-field helpers ───────────────────────────────────────────

    def encrypt_optional(self, plaintext: str | None) -> str | None:
        return self.encrypt(plaintext) if plaintext else plaintext

    def decrypt_optional(self, ciphertext: str | None) -> str | None:
        return self.decrypt(ciphertext) if ciphertext else ciphertext

    def seal_credentials(self, credentials: Mapping[str, str | None]) -> dict[str, str | None]:
        """Encrypt every non-empty value of a credential mapping."""
        return {k: self.encrypt_optional(v) for k, v in credentials.items()}

    def open_credentials(self, credentials: Mapping[str, str | None]) -> dict[str, str | None]:
        """Decrypt every non-empty value of a credential mapping."""
        return {k: self.decrypt_optional(v) for k, v in credentials.items()}
