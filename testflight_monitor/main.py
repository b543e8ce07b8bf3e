from __future__ import annotations

import argparse
import asyncio
import os
import signal

import httpx
import structlog

from testflight_monitor.config import MonitorSettings, load_settings, missing_settings
from testflight_monitor.errors import ConfigurationError
from testflight_monitor.logging_setup import configure_logging
from testflight_monitor.monitor import MonitorContext
from testflight_monitor.scheduler import MonitorScheduler
from testflight_monitor.telegram import TelegramNotifier, telegram_config_from_settings
from testflight_monitor.timers import TimerRegistry

logger = structlog.get_logger(__name__)


def log_startup_banner(settings: MonitorSettings) -> None:
    logger.info("=================================================")
    logger.info(" 🚀 TestFlight Availability Monitor Started 🚀")
    logger.info("=================================================")
    logger.info("📱 Monitoring the following TestFlight URLs:")
    for url in settings.testflight_urls:
        logger.info(f"   {url}")
    logger.info(f"⏱️  Check interval: {settings.check_interval_seconds} seconds")
    if settings.telegram_configured:
        logger.info("🔔 Notifications: Telegram (notifications sent on every available slot)")
    else:
        logger.info("🔕 Notifications: disabled (Telegram not configured)")
    logger.info("=================================================")


def warn_missing_settings(settings: MonitorSettings) -> None:
    missing = missing_settings(settings)
    if not missing:
        return
    logger.warning("⚠️  Missing configuration", keys=", ".join(missing))
    if "telegram_bot_token" in missing or "telegram_chat_id" in missing:
        logger.warning("Telegram notifications will not work without TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID.")
        logger.warning("Create a .env file based on .env.example and fill in the required values.")


async def run(settings: MonitorSettings) -> int:
    async with httpx.AsyncClient() as client:
        timers = TimerRegistry()
        ctx = MonitorContext(
            settings=settings,
            client=client,
            notifier=TelegramNotifier(client, telegram_config_from_settings(settings)),
            timers=timers,
        )
        scheduler = MonitorScheduler(ctx, timers)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, scheduler.stop)
            except NotImplementedError:
                # Windows event loops have no signal handler support.
                pass

        await scheduler.run_forever()
    logger.info("TestFlight monitor stopped")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="TestFlight Availability Monitor")
    parser.add_argument(
        "--config",
        default=os.getenv("MONITOR_CONFIG"),
        help="Path to YAML config (default: config/monitor.yaml if present)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (INFO, WARNING, ...); overrides LOG_LEVEL",
    )
    args = parser.parse_args()

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        configure_logging(args.log_level or os.getenv("LOG_LEVEL", "INFO"))
        logger.error("Invalid configuration", error=str(e))
        return 2

    configure_logging(args.log_level or settings.log_level, settings.log_file)
    warn_missing_settings(settings)
    log_startup_banner(settings)

    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
