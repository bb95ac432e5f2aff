"""
Configuration Management for Lesson Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Defaults for new ledgers, where the state file lives and how long
notifications stay on screen are all read from one place and
validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lesson_ledger.coercion import MAX_AMOUNT


class StorageSettings(BaseSettings):
    """Local state file configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LESSON_LEDGER_STORAGE_",
        extra="ignore"
    )

    directory: Path = Field(
        default=Path.home() / ".lesson_ledger",
        description="Directory holding the state file"
    )
    key: str = Field(
        default="lesson-ledger-state-v2",
        min_length=1,
        description="Name of the state slot (file name without extension)"
    )
    save_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failed write is attempted"
    )

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """The key becomes a file name, so no path separators."""
        if "/" in v or "\\" in v:
            raise ValueError(f"Storage key must not contain path separators: {v}")
        return v

    @property
    def state_path(self) -> Path:
        return self.directory / f"{self.key}.json"


class NotificationSettings(BaseSettings):
    """How long notifications stay visible."""

    model_config = SettingsConfigDict(
        env_prefix="LESSON_LEDGER_NOTIFY_",
        extra="ignore"
    )

    duration_ms: int = Field(
        default=4000,
        ge=0,
        description="Auto-dismiss delay for success, warning and info"
    )
    error_duration_ms: int = Field(
        default=5000,
        ge=0,
        description="Auto-dismiss delay for errors (they live longer)"
    )


class LedgerDefaults(BaseSettings):
    """Values a brand new or partially migrated ledger starts from."""

    model_config = SettingsConfigDict(
        env_prefix="LESSON_LEDGER_",
        extra="ignore"
    )

    default_lesson_duration: int = Field(
        default=60,
        ge=15,
        le=24 * 60,
        description="Lesson length in minutes"
    )
    default_lesson_price: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=MAX_AMOUNT,
        description="Price used when a lesson is booked without one"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )
    audit_history_limit: int = Field(
        default=1000,
        ge=1,
        description="Audit events kept by the in-memory audit store"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def notifications(self) -> NotificationSettings:
        return NotificationSettings()

    @property
    def defaults(self) -> LedgerDefaults:
        return LedgerDefaults()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    ``<name>_error`` entry for each failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("storage", "notifications", "defaults", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
