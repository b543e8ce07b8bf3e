from __future__ import annotations

import asyncio
from typing import Any, Callable, Protocol

import structlog

from testflight_monitor.monitor import MonitorContext, monitor_target
from testflight_monitor.state import CheckOutcome, TargetState, build_states

logger = structlog.get_logger(__name__)


class RoundTimers(Protocol):
    def call_every(
        self, interval_seconds: float, func: Callable[..., Any], *args: Any, name: str | None = None, run_now: bool = True
    ) -> str: ...

    def start(self) -> None: ...

    def shutdown(self) -> None: ...


class MonitorScheduler:
    """Checks every configured URL once per round, one round every interval."""

    def __init__(self, ctx: MonitorContext, timers: RoundTimers):
        self.ctx = ctx
        self.timers = timers
        self.urls: tuple[str, ...] = tuple(ctx.settings.testflight_urls)
        self.states: dict[str, TargetState] = build_states(self.urls)
        self.round_job_id: str | None = None
        self._stopped = asyncio.Event()

    async def run_round(self) -> dict[str, CheckOutcome | None]:
        results = await asyncio.gather(
            *(monitor_target(url, self.states[url], self.ctx) for url in self.states),
            return_exceptions=True,
        )

        outcomes: dict[str, CheckOutcome | None] = {}
        for url, result in zip(self.states, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(
                    "Unexpected error while checking TestFlight",
                    url=url,
                    error=f"{type(result).__name__}: {result}",
                )
                outcomes[url] = None
            else:
                outcomes[url] = result

        logger.info("Next check scheduled", in_seconds=self.ctx.settings.check_interval_seconds)
        return outcomes

    def start(self) -> None:
        if self.round_job_id is not None:
            logger.warning("Scheduler already started")
            return
        self.timers.start()
        self.round_job_id = self.timers.call_every(
            self.ctx.settings.check_interval_seconds,
            self.run_round,
            name="testflight-round",
            run_now=True,
        )

    def stop(self) -> None:
        self.timers.shutdown()
        self.round_job_id = None
        self._stopped.set()

    async def run_forever(self) -> None:
        self.start()
        await self._stopped.wait()
