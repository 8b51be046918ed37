from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    # Process-wide master secret mixed into every per-relationship note key.
    # Validated when the encryption codec is built at startup.
    encryption_key: Optional[str] = os.getenv("ENCRYPTION_KEY")

    # Reminders are pinned to this hour of day in the given IANA timezone.
    reminder_hour: int = int(os.getenv("REMINDER_HOUR", "9"))
    reminder_timezone: str = os.getenv("REMINDER_TIMEZONE", "UTC")
    reminder_message: str = os.getenv("REMINDER_MESSAGE", "Reminder: Follow the doctor's plan.")

    # Background dispatcher.
    dispatcher_enabled: bool = os.getenv("DISPATCHER_ENABLED", "true").lower() == "true"
    dispatcher_interval_seconds: float = float(os.getenv("DISPATCHER_INTERVAL_SECONDS", "60"))
    dispatcher_send_timeout_seconds: float = float(os.getenv("DISPATCHER_SEND_TIMEOUT_SECONDS", "10"))
    # A claim older than this is considered abandoned (e.g. a crashed replica)
    # and reverted to pending on the next sweep.
    dispatcher_claim_timeout_seconds: float = float(os.getenv("DISPATCHER_CLAIM_TIMEOUT_SECONDS", "300"))
    dispatcher_max_attempts: int = int(os.getenv("DISPATCHER_MAX_ATTEMPTS", "5"))
    dispatcher_backoff_base_seconds: float = float(os.getenv("DISPATCHER_BACKOFF_BASE_SECONDS", "60"))
    dispatcher_backoff_max_seconds: float = float(os.getenv("DISPATCHER_BACKOFF_MAX_SECONDS", "3600"))

    # Notification backend selection: "log" (default) or "webhook".
    notifier_backend: str = os.getenv("NOTIFIER_BACKEND", "log")
    notifier_webhook_url: Optional[str] = os.getenv("NOTIFIER_WEBHOOK_URL")

    # Action-plan extraction backend: "demo" (default) or "llm".
    note_authoring_backend: str = os.getenv("NOTE_AUTHORING_BACKEND", "demo")

    # Optional database configuration for SQL-backed repositories.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Optional settings for external providers.
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4.1-mini")

    # Basic API authentication configuration.
    # When ENABLE_API_AUTH=true, protected endpoints require a valid API key.
    enable_api_auth: bool = os.getenv("ENABLE_API_AUTH", "false").lower() == "true"
    # Comma-separated list of allowed API keys when auth is enabled.
    api_keys: Optional[str] = os.getenv("API_KEYS")

    # CORS configuration: comma-separated origins (e.g. "https://app.example.com,https://admin.example.com").
    # Default is "*" (allow all) which is acceptable for local development but
    # should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")


settings = Settings()
