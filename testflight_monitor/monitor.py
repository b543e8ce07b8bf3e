"""Per-target check: fetch, classify, update streak state, notify, retry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

import httpx
import structlog

from testflight_monitor.classifier import classify
from testflight_monitor.config import MonitorSettings
from testflight_monitor.errors import FetchError, NotificationError, ParseError
from testflight_monitor.fetcher import fetch_page
from testflight_monitor.state import AvailabilityResult, CheckOutcome, TargetState

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    async def notify(self, text: str) -> None: ...


class Timers(Protocol):
    def call_later(self, delay_seconds: float, func: Callable[..., Any], *args: Any, name: str | None = None) -> str: ...


@dataclass
class MonitorContext:
    settings: MonitorSettings
    client: httpx.AsyncClient
    notifier: Notifier
    timers: Timers
    fetch: Callable[..., Awaitable[str]] = field(default=fetch_page)
    classify: Callable[[str], AvailabilityResult] = field(default=classify)


def build_available_message(url: str, result: AvailabilityResult) -> str:
    return f"🎉 TestFlight is now AVAILABLE! 🎉\n\nApp: {result.app_name}\n\nGet it now: {url}"


def build_escalation_message(url: str, error: str) -> str:
    return (
        "⚠️ Warning: Having trouble checking TestFlight availability.\n"
        f"URL: {url}\n"
        f"Error: {error}\n\n"
        "Will continue monitoring, but you may want to check manually."
    )


async def _check(url: str, ctx: MonitorContext) -> AvailabilityResult:
    """Fetch and classify ``url``. Every failure surfaces as FetchError or ParseError."""
    try:
        html = await ctx.fetch(
            ctx.client,
            url,
            timeout=ctx.settings.request_timeout_seconds,
            user_agent=ctx.settings.user_agent,
        )
    except FetchError:
        raise
    except Exception as e:
        raise FetchError(f"{type(e).__name__}: {e}") from e

    try:
        return ctx.classify(html)
    except ParseError:
        raise
    except Exception as e:
        raise ParseError(f"{type(e).__name__}: {e}") from e


async def _handle_success(url: str, state: TargetState, result: AvailabilityResult, ctx: MonitorContext) -> CheckOutcome:
    state.record_success(result)

    if not result.is_available:
        logger.info("❌ TestFlight is FULL", app=result.app_name, url=url)
        return CheckOutcome.FULL

    logger.info("✅ TestFlight is AVAILABLE", app=result.app_name, url=url)
    try:
        await ctx.notifier.notify(build_available_message(url, result))
    except NotificationError as e:
        logger.error("Failed to send availability notification", url=url, error=str(e))
    else:
        logger.info("Availability notification sent to Telegram", app=result.app_name, url=url)
    return CheckOutcome.AVAILABLE


async def _handle_failure(url: str, state: TargetState, error: Exception, ctx: MonitorContext) -> CheckOutcome:
    attempt = state.record_failure(str(error))
    max_retries = ctx.settings.max_retries
    logger.error("Error checking TestFlight", url=url, attempt=attempt, error=str(error))

    if attempt < max_retries:
        delay = ctx.settings.retry_delay_seconds
        logger.info("Retrying TestFlight check", url=url, retry_in_seconds=delay)
        ctx.timers.call_later(delay, monitor_target, url, state, ctx, name=f"retry:{url}")
        return CheckOutcome.RETRY_SCHEDULED

    if attempt == max_retries:
        try:
            await ctx.notifier.notify(build_escalation_message(url, str(error)))
        except NotificationError as e:
            logger.error("Failed to send error notification", url=url, error=str(e))
        else:
            logger.info("Error notification sent to Telegram", url=url)
        return CheckOutcome.ESCALATED

    return CheckOutcome.FAILED


async def monitor_target(url: str, state: TargetState, ctx: MonitorContext) -> CheckOutcome:
    """Run one check of ``url`` and apply the retry/escalation policy.

    Success resets ``state.consecutive_errors`` and, when slots are open,
    notifies every time. Failure increments the streak; below
    ``max_retries`` an out-of-band retry is scheduled, at exactly
    ``max_retries`` one escalation is sent, above it nothing extra happens
    until the regular round checks again.
    """
    if ctx.settings.single_flight and state.in_flight:
        logger.info("Check already in flight, skipping", url=url)
        return CheckOutcome.SKIPPED

    state.in_flight += 1
    try:
        logger.info("Checking TestFlight availability", url=url)
        try:
            result = await _check(url, ctx)
        except (FetchError, ParseError) as e:
            return await _handle_failure(url, state, e, ctx)
        return await _handle_success(url, state, result, ctx)
    finally:
        state.in_flight -= 1
