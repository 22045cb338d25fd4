"""Input validation for check configurations."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from apipulse.errors import ValidationError
from apipulse.monitoring.models import HttpMethod
from apipulse.plans import Plan, get_plan_limits

ENDPOINT_PATTERN = r"^/[a-zA-Z0-9/\-_]*$"


def _check_json(value: str | None) -> str | None:
    if value is not None:
        try:
            json.loads(value)
        except ValueError as e:
            raise ValueError("Please enter valid JSON") from e
    return value


def _upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


class CheckConfigInput(BaseModel):
    connection_id: str = Field(min_length=1, pattern=r"^[a-zA-Z0-9_-]+$")
    endpoint: str = Field(min_length=1, pattern=ENDPOINT_PATTERN)
    method: HttpMethod = HttpMethod.GET
    expected_status: int = Field(default=200, ge=100, le=599)
    timeout_ms: int = Field(default=30_000, ge=1000, le=30_000)
    interval_seconds: int = Field(default=300, ge=30, le=3600)
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    query_params: dict[str, str] = Field(default_factory=dict)

    @field_validator("body")
    @classmethod
    def body_is_json(cls, v: str | None) -> str | None:
        return _check_json(v)

    @field_validator("method", mode="before")
    @classmethod
    def method_upper(cls, v: Any) -> Any:
        return _upper(v)


class CheckConfigUpdate(BaseModel):
    endpoint: str | None = Field(default=None, min_length=1, pattern=ENDPOINT_PATTERN)
    method: HttpMethod | None = None
    expected_status: int | None = Field(default=None, ge=100, le=599)
    timeout_ms: int | None = Field(default=None, ge=1000, le=30_000)
    interval_seconds: int | None = Field(default=None, ge=30, le=3600)
    headers: dict[str, str] | None = None
    body: str | None = None
    query_params: dict[str, str] | None = None
    is_active: bool | None = None

    @field_validator("body")
    @classmethod
    def body_is_json(cls, v: str | None) -> str | None:
        return _check_json(v)

    @field_validator("method", mode="before")
    @classmethod
    def method_upper(cls, v: Any) -> Any:
        return _upper(v)


def _format(e: PydanticValidationError) -> str:
    parts = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
    return "Validation failed: " + ", ".join(parts)


def _enforce_plan_interval(interval: int | None, plan: Plan | str | None) -> None:
    if interval is None or plan is None:
        return
    limits = get_plan_limits(plan)
    if interval < limits.min_interval:
        raise ValidationError(
            f"Validation failed: interval must be at least {limits.min_interval} seconds on the {limits.name} plan",
            field="interval_seconds",
        )


def validate_check_input(data: dict[str, Any], plan: Plan | str | None = None) -> CheckConfigInput:
    """Validate a new check; raises ValidationError with every problem listed."""
    try:
        parsed = CheckConfigInput.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_format(e)) from e
    _enforce_plan_interval(parsed.interval_seconds, plan)
    return parsed


def validate_check_update(data: dict[str, Any], plan: Plan | str | None = None) -> dict[str, Any]:
    """Validate a partial update; returns only the fields that were supplied."""
    try:
        parsed = CheckConfigUpdate.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_format(e)) from e
    _enforce_plan_interval(parsed.interval_seconds, plan)
    return parsed.model_dump(exclude_unset=True)
