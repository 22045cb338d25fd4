"""Domain errors shared across the engine.

Probe outcomes (TIMEOUT / FAILURE / ERROR) are never raised; they are data in
a CheckResult. These exceptions cover the things around a probe: missing
rows, bad input, and storage failures.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors surfaced to callers of the engine."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class NotFoundError(AppError):
    """Raised when a check configuration or connection does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with ID '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(AppError):
    """Raised when check configuration input is rejected."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, f"VALIDATION_{field.upper()}" if field else None)
        self.field = field


class StorageError(AppError):
    """Raised when a store read or write fails."""

    code = "DATABASE_ERROR"
