"""Configuration for pocketledger.

Uses pydantic-settings so every option can be set from the environment with
the ``POCKETLEDGER_`` prefix (or a local ``.env`` file).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="POCKETLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: Optional[str] = Field(
        default=None,
        description="Path to the SQLite database file",
    )
    default_currency: str = Field(
        default="USD",
        description="Reporting currency for mixed-currency roll-ups",
    )

    # Exchange rate provider
    exchange_rate_url: str = Field(
        default="https://open.er-api.com/v6/latest",
        description="Base URL; the base currency code is appended as a path segment",
    )
    rate_freshness_hours: int = Field(
        default=24,
        ge=1,
        description="How long a cached rate is considered fresh",
    )
    rate_fetch_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for a single rate request",
    )

    # Rebuild queue
    rebuild_batch_size: int = Field(default=10, ge=1)
    rebuild_retry_limit: int = Field(default=3, ge=1)

    # Logging
    log_level: str = Field(default="WARNING")
    log_json: bool = Field(default=False)

    @field_validator("default_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Currency codes are three letters, stored upper-case."""
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code '{v}'")
        return code

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level '{v}'")
        return level


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
