from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from testflight_monitor.config import MonitorSettings
from testflight_monitor.errors import NotificationError

logger = structlog.get_logger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str
    chat_id: str
    parse_mode: str | None = "Markdown"
    api_base: str = TELEGRAM_API_BASE


def telegram_config_from_settings(settings: MonitorSettings) -> TelegramConfig | None:
    if not settings.telegram_configured:
        return None
    return TelegramConfig(
        bot_token=str(settings.telegram_bot_token),
        chat_id=str(settings.telegram_chat_id),
        parse_mode=settings.telegram_parse_mode,
    )


def _redact(text: str, config: TelegramConfig) -> str:
    if config.bot_token:
        return text.replace(config.bot_token, "<redacted>")
    return text


def _describe_rejection(data: dict[str, Any]) -> str:
    if data.get("description"):
        return str(data["description"])
    if data.get("error_code") is not None:
        return f"error_code {data['error_code']}"
    return "no description"


async def send_telegram_message(client: httpx.AsyncClient, config: TelegramConfig, text: str) -> dict[str, Any]:
    """Send one message. Returns Telegram's response body; raises NotificationError unless it reports ok."""
    url = f"{config.api_base.rstrip('/')}/bot{config.bot_token}/sendMessage"
    payload: dict[str, Any] = {"chat_id": config.chat_id, "text": text}
    if config.parse_mode:
        payload["parse_mode"] = config.parse_mode

    try:
        resp = await client.post(url, json=payload, timeout=TELEGRAM_TIMEOUT_SECONDS)
    except httpx.RequestError as e:
        raise NotificationError(_redact(f"Failed to send Telegram notification: {type(e).__name__}: {e}", config)) from e

    try:
        data = resp.json()
    except ValueError as e:
        raise NotificationError(
            f"Failed to send Telegram notification: non-JSON response (HTTP {resp.status_code})"
        ) from e
    if not isinstance(data, dict):
        raise NotificationError(f"Failed to send Telegram notification: unexpected response (HTTP {resp.status_code})")

    if resp.status_code != 200 or not data.get("ok"):
        raise NotificationError(
            _redact(
                "Failed to send Telegram notification: Telegram API returned error "
                f"(HTTP {resp.status_code}): {_describe_rejection(data)}",
                config,
            )
        )
    return data


class TelegramNotifier:
    """Delivers text notifications to one Telegram chat.

    Every call is an independent attempt: no retries, batching or
    deduplication. Callers log and handle the NotificationError.
    """

    def __init__(self, client: httpx.AsyncClient, config: TelegramConfig | None):
        self.client = client
        self.config = config

    @property
    def configured(self) -> bool:
        return self.config is not None

    async def notify(self, text: str) -> None:
        if self.config is None:
            raise NotificationError(
                "Telegram configuration is missing. Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID."
            )

        data = await send_telegram_message(self.client, self.config, text)
        result = data.get("result") if isinstance(data.get("result"), dict) else {}
        logger.debug("Telegram notification sent", message_id=result.get("message_id"))
