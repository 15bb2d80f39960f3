"""Recovery SDK settings and logging configuration."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any, Literal

import structlog
from pydantic import AnyHttpUrl, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from recovery.cooldown import DEFAULT_COOLDOWN_SECONDS, LAST_NO_CODE_TIME_KEY

_LOG_CONTEXT: dict[str, str] = {"environment": "development", "service": "password-recovery"}


class AppSettings(BaseModel):
    """Application identity and runtime settings."""

    environment: Literal["development", "staging", "production"] = "development"
    service: str = "password-recovery"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    locale: Literal["en", "vi"] = "en"


class APISettings(BaseModel):
    """Recovery REST endpoint settings."""

    base_url: AnyHttpUrl
    timeout_seconds: float = Field(default=5.0, gt=0)


class CooldownSettings(BaseModel):
    """Resend cooldown settings."""

    duration_seconds: int = Field(default=DEFAULT_COOLDOWN_SECONDS, ge=1)
    storage_key: str = Field(default=LAST_NO_CODE_TIME_KEY, min_length=1)


class RedisSettings(BaseModel):
    """Optional Redis preference store settings."""

    url: str | None = Field(default=None, description="Redis URL.")
    key_prefix: str = "recovery:"

    @field_validator("url")
    @classmethod
    def validate_redis_url(cls, value: str | None) -> str | None:
        """Ensure the Redis URL uses a supported scheme."""
        if value is not None and not value.startswith(("redis://", "rediss://")):
            raise ValueError("redis.url must start with 'redis://' or 'rediss://'.")
        return value


class Settings(BaseSettings):
    """Root settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    api: APISettings
    cooldown: CooldownSettings = Field(default_factory=CooldownSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)


def _standard_log_fields(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Inject required structured logging fields."""
    event_dict.setdefault("environment", _LOG_CONTEXT["environment"])
    event_dict.setdefault("service", _LOG_CONTEXT["service"])
    event_dict.setdefault("timestamp", datetime.now(UTC).isoformat())
    return event_dict


def configure_structlog(settings: Settings) -> None:
    """Configure structlog for JSON output with required fields."""
    _LOG_CONTEXT["environment"] = settings.app.environment
    _LOG_CONTEXT["service"] = settings.app.service

    log_level = getattr(logging, settings.app.log_level, logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _standard_log_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Load and cache settings from environment variables."""
    return Settings()
