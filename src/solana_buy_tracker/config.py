"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Solana buy tracker, loading and validating environment variables at
startup.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramSettings(BaseSettings):
    """Telegram bot settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    bot_token: SecretStr = Field(
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token",
    )
    chat_id: str = Field(
        alias="TELEGRAM_CHAT_ID",
        description="Telegram chat ID for buy alerts",
    )

    @field_validator("chat_id")
    @classmethod
    def validate_chat_id(cls, v: str) -> str:
        """Reject blank chat IDs."""
        v = v.strip()
        if not v:
            raise ValueError("TELEGRAM_CHAT_ID must not be empty")
        return v


class SolanaSettings(BaseSettings):
    """Solana RPC settings."""

    model_config = SettingsConfigDict(env_prefix="SOLANA_")

    rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        alias="SOLANA_RPC_URL",
        description="Primary Solana RPC endpoint",
    )
    fallback_rpc_url: str | None = Field(
        default=None,
        alias="SOLANA_FALLBACK_RPC_URL",
        description="Fallback Solana RPC endpoint",
    )

    @field_validator("rpc_url", "fallback_rpc_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate RPC URL format."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("RPC URL must be an HTTP(S) endpoint")
        return v


class PollingSettings(BaseSettings):
    """Polling schedule and buy thresholds."""

    model_config = SettingsConfigDict(env_prefix="")

    interval_seconds: float = Field(
        default=3.0,
        alias="POLL_INTERVAL_SECONDS",
        description="Seconds between polling ticks",
        gt=0,
    )
    signature_page_size: int = Field(
        default=10,
        alias="SIGNATURE_PAGE_SIZE",
        description="Signatures requested per getSignaturesForAddress call",
        ge=1,
        le=1000,
    )
    max_signature_pages: int = Field(
        default=5,
        alias="MAX_SIGNATURE_PAGES",
        description="Pages walked back per token and tick",
        ge=1,
    )
    max_delivery_attempts: int = Field(
        default=5,
        alias="MAX_DELIVERY_ATTEMPTS",
        description="Failed deliveries of one alert before it is skipped",
        ge=1,
    )
    min_sol_spent: Decimal = Field(
        default=Decimal(0),
        alias="MIN_SOL_SPENT",
        description="Minimum SOL spent for a buy to be reported",
        ge=0,
    )
    min_value_usd: Decimal = Field(
        default=Decimal(0),
        alias="MIN_VALUE_USD",
        description="Minimum USD value for a buy to be reported (0 disables)",
        ge=0,
    )


class StorageSettings(BaseSettings):
    """Tracked token list and cursor persistence."""

    model_config = SettingsConfigDict(env_prefix="")

    tracked_tokens_file: str = Field(
        default="data/added_tokens.txt",
        alias="TRACKED_TOKENS_FILE",
        description="Newline-separated list of tracked mint addresses",
    )
    cursor_store_path: str = Field(
        default="data/cursors.json",
        alias="CURSOR_STORE_PATH",
        description="JSON file holding per-token cursors",
    )
    redis_url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; stores cursors in Redis when set",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files.

    Example:
        ```python
        from solana_buy_tracker.config import get_settings

        settings = get_settings()
        print(settings.solana.rpc_url)
        print(settings.polling.interval_seconds)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    solana: SolanaSettings = Field(default_factory=SolanaSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    # Application settings
    http_timeout_seconds: float = Field(
        default=10.0,
        alias="HTTP_TIMEOUT_SECONDS",
        description="Timeout for outbound HTTP requests",
        gt=0,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    health_port: int = Field(
        default=10000,
        validation_alias=AliasChoices("HEALTH_PORT", "PORT"),
        description="HTTP port for health check endpoints",
        ge=1,
        le=65535,
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Log alerts instead of sending them",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "solana": {
                "rpc_url": self.solana.rpc_url,
                "fallback_rpc_url": self.solana.fallback_rpc_url or "(not set)",
            },
            "telegram": {
                "bot_token": "(set)",
                "chat_id": self.telegram.chat_id,
            },
            "polling": {
                "interval_seconds": str(self.polling.interval_seconds),
                "min_sol_spent": str(self.polling.min_sol_spent),
                "min_value_usd": str(self.polling.min_value_usd),
            },
            "tracked_tokens_file": self.storage.tracked_tokens_file,
            "cursor_store": (
                self._redact_url(self.storage.redis_url)
                if self.storage.redis_url
                else self.storage.cursor_store_path
            ),
            "log_level": self.log_level,
            "health_port": str(self.health_port),
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.rindex("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
