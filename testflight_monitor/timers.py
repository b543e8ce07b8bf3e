"""Deferred and repeating work on top of APScheduler's asyncio scheduler."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = structlog.get_logger(__name__)

# Rounds and retries may overlap, so APScheduler must never skip a run
# because an earlier instance of the same job is still going.
UNBOUNDED_INSTANCES = 10_000


class TimerRegistry:
    """Schedules coroutine functions to run later, once or on a fixed interval."""

    def __init__(self, scheduler: AsyncIOScheduler | None = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.running = False

    def start(self) -> None:
        if self.running:
            logger.warning("Timer registry already running")
            return
        self.scheduler.start()
        self.running = True

    def shutdown(self) -> None:
        if not self.running:
            return
        self.scheduler.shutdown(wait=False)
        self.running = False

    def call_later(self, delay_seconds: float, func: Callable[..., Any], *args: Any, name: str | None = None) -> str:
        job_id = f"later-{uuid.uuid4().hex}"
        run_date = datetime.now(timezone.utc) + timedelta(seconds=max(0.0, float(delay_seconds)))
        self.scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_date),
            args=args,
            id=job_id,
            name=name or job_id,
            misfire_grace_time=None,
        )
        return job_id

    def call_every(
        self,
        interval_seconds: float,
        func: Callable[..., Any],
        *args: Any,
        name: str | None = None,
        run_now: bool = True,
    ) -> str:
        job_id = f"every-{uuid.uuid4().hex}"
        kwargs: dict[str, Any] = {}
        if run_now:
            kwargs["next_run_time"] = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=float(interval_seconds)),
            args=args,
            id=job_id,
            name=name or job_id,
            max_instances=UNBOUNDED_INSTANCES,
            coalesce=False,
            misfire_grace_time=None,
            **kwargs,
        )
        return job_id

    def cancel(self, job_id: str) -> bool:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        return True
