"""
Configuration management for the application.

This module defines the Settings class, which loads and validates application settings
from environment variables and a .env file. Secrets default to empty strings so the
webhook can still answer with a controlled 500 when it is deployed without them.
"""
from typing import Any, Literal, Optional
from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from app.errors import ConfigurationError

DEFAULT_NOTION_DATABASE_ID = "312009f00c208036be25c17b44b2c667"
DEFAULT_NOTION_API_VERSION = "2025-09-03"
DEFAULT_MAX_FILE_BYTES = 100 * 1024 * 1024
_TRUE_FLAG_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseSettings):
    """Loads and validates all application settings from the environment."""

    _VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}

    # --- Environment File Configuration ---
    model_config: SettingsConfigDict = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
    # --- Core API Keys & Identifiers ---
    TELEGRAM_BOT_TOKEN: str = ""
    NOTION_API_TOKEN: str = ""
    NOTION_DATABASE_ID: str = DEFAULT_NOTION_DATABASE_ID
    NOTION_API_VERSION: str = DEFAULT_NOTION_API_VERSION
    # --- Attachment Uploads ---
    TELEGRAM_NOTION_MAX_FILE_BYTES: int = DEFAULT_MAX_FILE_BYTES
    # --- Webhook Settings ---
    TELEGRAM_WEBHOOK_SECRET_TOKEN: Optional[str] = None
    TELEGRAM_WEBHOOK_REQUIRE_SECRET_TOKEN: bool = False
    WEBHOOK_URL: Optional[str] = None
    WEBHOOK_HOST: str = "0.0.0.0"
    WEBHOOK_PORT: int = 8000
    WEBHOOK_PATH: str = "/api/telegram"
    # --- Polling Settings ---
    RUN_MODE: Literal["webhook", "polling"] = "webhook"
    POLLING_LIMIT: int = 50
    STARTUP_POLLING_MAX_RUNS: int = 0
    STATE_FILE_PATH: str = "data/polling_state.json"
    # --- General ---
    LOG_LEVEL: str = "INFO"

    @field_validator("TELEGRAM_NOTION_MAX_FILE_BYTES", mode="before")
    @classmethod
    def _coerce_max_file_bytes(cls, value: Any) -> int:
        """
        Accepts any positive number as the upload cap and falls back to the default otherwise.
        Args:
            value: The raw value taken from the environment.
        Returns:
            int: The configured cap, floored to whole bytes.
        """
        try:
            configured = float(value)
        except (TypeError, ValueError):
            return DEFAULT_MAX_FILE_BYTES
        if configured != configured or configured in (float("inf"), float("-inf")) or configured <= 0:
            return DEFAULT_MAX_FILE_BYTES
        return int(configured)

    @field_validator("TELEGRAM_WEBHOOK_REQUIRE_SECRET_TOKEN", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> bool:
        """Interprets 1/true/yes/on (case-insensitive) as enabled; everything else disables the flag."""
        if isinstance(value, bool):
            return value
        if value is None:
            return False
        return str(value).strip().lower() in _TRUE_FLAG_VALUES

    @model_validator(mode="after")
    def _validate_settings(self) -> "Settings":
        """
        Performs cross-field validation for settings that depend on each other.
        Returns:
            Settings: The validated settings instance.
        Raises:
            ValueError: When configuration is structurally invalid.
        """
        if not self.NOTION_DATABASE_ID.strip():
            raise ValueError("NOTION_DATABASE_ID must be a non-empty string.")
        if not self.NOTION_API_VERSION.strip():
            raise ValueError("NOTION_API_VERSION must be a non-empty string.")
        if not 1 <= self.WEBHOOK_PORT <= 65535:
            raise ValueError("WEBHOOK_PORT must be within the range 1-65535.")
        if not self.WEBHOOK_PATH.startswith("/"):
            raise ValueError("WEBHOOK_PATH must start with '/'.")
        if self.POLLING_LIMIT <= 0:
            raise ValueError("POLLING_LIMIT must be greater than zero.")
        if self.STARTUP_POLLING_MAX_RUNS < 0:
            raise ValueError("STARTUP_POLLING_MAX_RUNS must be greater than or equal to zero.")
        if not self.STATE_FILE_PATH.strip():
            raise ValueError("STATE_FILE_PATH must be a non-empty string.")
        log_level = self.LOG_LEVEL.strip().upper()
        if log_level not in self._VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {sorted(self._VALID_LOG_LEVELS)}, got '{self.LOG_LEVEL}'."
            )
        return self

    @property
    def formatted_database_id(self) -> str:
        """Returns the database ID in hyphenated UUID form when it was given as 32 bare hex characters."""
        return format_database_id(self.NOTION_DATABASE_ID.strip())

    def require_tokens(self) -> None:
        """
        Ensures the credentials needed for ingestion are present.
        Raises:
            ConfigurationError: If the Telegram or Notion token is missing.
        """
        missing = [
            name
            for name, value in (
                ("TELEGRAM_BOT_TOKEN", self.TELEGRAM_BOT_TOKEN),
                ("NOTION_API_TOKEN", self.NOTION_API_TOKEN),
            )
            if not value.strip()
        ]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    def require_webhook_secret(self) -> Optional[str]:
        """
        Returns the webhook secret that requests must present, or None when enforcement is off.
        Raises:
            ConfigurationError: If enforcement is enabled without a configured secret.
        """
        if not self.TELEGRAM_WEBHOOK_REQUIRE_SECRET_TOKEN:
            return None
        if not self.TELEGRAM_WEBHOOK_SECRET_TOKEN:
            raise ConfigurationError(
                "Server misconfigured: TELEGRAM_WEBHOOK_SECRET_TOKEN is required "
                "when TELEGRAM_WEBHOOK_REQUIRE_SECRET_TOKEN=true"
            )
        return self.TELEGRAM_WEBHOOK_SECRET_TOKEN


def format_database_id(database_id: str) -> str:
    """
    Converts a 32-character Notion ID into the 8-4-4-4-12 form; other inputs are returned unchanged.
    Args:
        database_id: The raw database ID, with or without hyphens.
    Returns:
        The normalized database ID.
    """
    clean = database_id.replace("-", "")
    if len(clean) != 32:
        return database_id
    return f"{clean[:8]}-{clean[8:12]}-{clean[12:16]}-{clean[16:20]}-{clean[20:]}"


try:
    settings = Settings()
except ValidationError as error:
    raise RuntimeError(f"Invalid application configuration: {error}") from error
