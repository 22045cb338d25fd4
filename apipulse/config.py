from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Credential vault (32 characters, AES-256-GCM). Checked when the vault is built.
    encryption_key: str = ""

    # Storage
    database_path: str = "data/apipulse.db"
    result_retention_days: int = 30

    # Probing
    probe_workers: int = 8
    user_agent: str = "API-Pulse-Monitor/1.0"
    enforce_check_interval: bool = True  # per-check interval gate on top of the 30s floor

    # Cost tracking endpoints (overridable for sandboxes)
    stripe_api_base: str = "https://api.stripe.com"
    twilio_api_base: str = "https://api.twilio.com"
    cost_request_timeout: float = 15.0

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cron_token: str = ""  # empty = cron route is open (dev mode)

    # Logging
    log_level: str = "INFO"


settings = Settings()
