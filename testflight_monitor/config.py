"""Configuration management for the TestFlight monitor."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from testflight_monitor.errors import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_TESTFLIGHT_URL = "https://testflight.apple.com/join/72eyUWVE"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.114 Safari/537.36"
)
DEFAULT_CONFIG_PATH = "config/monitor.yaml"

REQUIRED_KEYS = ("testflight_urls", "telegram_bot_token", "telegram_chat_id")

# Numeric settings that fall back to their default (with a warning) when unparseable or <= 0.
_NUMERIC_DEFAULTS: dict[str, tuple[type, int | float]] = {
    "check_interval_seconds": (int, 10),
    "max_retries": (int, 3),
    "retry_delay_seconds": (int, 30),
    "request_timeout_seconds": (float, 10.0),
}


class MonitorSettings(BaseModel):
    """Settings for one monitor process. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    testflight_urls: tuple[str, ...] = Field(
        default=(DEFAULT_TESTFLIGHT_URL,), description="TestFlight join URLs to monitor"
    )
    check_interval_seconds: int = Field(default=10, gt=0, description="Seconds between check rounds")
    max_retries: int = Field(default=3, gt=0, description="Failures in a row before escalating")
    retry_delay_seconds: int = Field(default=30, gt=0, description="Delay before an out-of-band retry")
    request_timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP timeout per fetch")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header sent with fetches")

    telegram_bot_token: str | None = Field(default=None, description="Telegram bot token")
    telegram_chat_id: str | None = Field(default=None, description="Telegram chat id")
    telegram_parse_mode: str | None = Field(default="Markdown", description="Telegram parse_mode")

    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(default="testflight-monitor.log", description="Rotating log file path")

    single_flight: bool = Field(
        default=False, description="Skip a check when one for the same URL is still running"
    )

    @field_validator("testflight_urls", mode="before")
    @classmethod
    def _split_urls(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return tuple(str(u).strip() for u in value if str(u or "").strip())
        return value

    @field_validator("testflight_urls")
    @classmethod
    def _require_urls(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("at least one TestFlight URL is required")
        return value

    @field_validator("telegram_bot_token", "telegram_chat_id", "telegram_parse_mode", "log_file", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # YAML reads numeric chat ids as ints.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)


def _coerce_positive_number(key: str, value: Any) -> int | float:
    kind, default = _NUMERIC_DEFAULTS[key]
    try:
        parsed = kind(str(value).strip())
    except (TypeError, ValueError):
        logger.warning("Invalid numeric setting, using default", key=key, value=value, default=default)
        return default
    # float("nan") parses; treat it like any other unusable value.
    if not parsed > 0:
        logger.warning("Non-positive numeric setting, using default", key=key, value=value, default=default)
        return default
    return parsed


def _coerce_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def _env_overrides() -> dict[str, Any]:
    env = {
        "testflight_urls": os.getenv("TESTFLIGHT_URLS"),
        "check_interval_seconds": os.getenv("CHECK_INTERVAL_SECONDS"),
        "max_retries": os.getenv("MAX_RETRIES"),
        "retry_delay_seconds": os.getenv("RETRY_DELAY_SECONDS"),
        "request_timeout_seconds": os.getenv("REQUEST_TIMEOUT_SECONDS"),
        "user_agent": os.getenv("USER_AGENT"),
        "telegram_bot_token": os.getenv("TELEGRAM_BOT_TOKEN"),
        "telegram_chat_id": os.getenv("TELEGRAM_CHAT_ID"),
        "telegram_parse_mode": os.getenv("TELEGRAM_PARSE_MODE"),
        "log_level": os.getenv("LOG_LEVEL"),
        "log_file": os.getenv("LOG_FILE"),
        "single_flight": os.getenv("SINGLE_FLIGHT"),
    }
    overrides: dict[str, Any] = {}
    for key, value in env.items():
        if value is None:
            continue
        if key == "single_flight":
            overrides[key] = _coerce_bool(value)
        else:
            overrides[key] = value
    return overrides


def load_settings(config_path: str | Path | None = None, *, use_dotenv: bool = True) -> MonitorSettings:
    """Load settings from a YAML file, then apply environment variable overrides."""
    if use_dotenv:
        load_dotenv(override=False)

    if config_path is None:
        config_path = os.getenv("MONITOR_CONFIG", DEFAULT_CONFIG_PATH)
    path = Path(config_path)

    config_data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config YAML must be a mapping: {path}")
        config_data.update(loaded)

    config_data.update(_env_overrides())

    for key in _NUMERIC_DEFAULTS:
        if key in config_data and config_data[key] is not None:
            config_data[key] = _coerce_positive_number(key, config_data[key])

    try:
        return MonitorSettings(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def missing_settings(settings: MonitorSettings) -> list[str]:
    """Return the required keys that are not set."""
    return [key for key in REQUIRED_KEYS if not getattr(settings, key)]
