"""
Recurring jobs on a lane.

Each process that runs the stats lane also runs a RecurringJob loop. At
every cron slot it enqueues one job whose id is derived from the slot, and
the lane's dedupe marker makes sure only one of those enqueues lands, no
matter how many processes fire or how often they restart.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from swstarter.features.query_analytics.domain import Job
from swstarter.infrastructure.observability.logging import get_logger

from .cron import CronSchedule
from .queue import JobLane

logger = get_logger(__name__)

RETRY_DELAY_SECONDS = 60


class RecurringJob:
    def __init__(
        self,
        lane: JobLane,
        name: str,
        schedule: CronSchedule,
        job_factory: Callable[[str], Job],
        now: Callable[[], datetime] = datetime.now,
    ):
        self.lane = lane
        self.name = name
        self.schedule = schedule
        self.job_factory = job_factory
        self.now = now
        self.last_fired: datetime | None = None
        self._task: asyncio.Task | None = None

    def slot_job_id(self, slot: datetime) -> str:
        return f"repeat:{self.name}:{int(slot.timestamp())}"

    async def register(self) -> None:
        """Idempotent: re-registering an unchanged schedule is a no-op."""
        changed = await self.lane.register_repeat(self.name, self.schedule.expression)
        logger.info(
            "Recurring job registered",
            lane=self.lane.name,
            job=self.name,
            cron=self.schedule.expression,
            changed=changed,
        )

    async def fire(self, slot: datetime) -> bool:
        """Enqueue the job for ``slot``; False if another process already did."""
        job = self.job_factory(self.slot_job_id(slot))
        enqueued = await self.lane.enqueue(job, dedupe=True)
        self.last_fired = slot
        if enqueued:
            logger.info("Recurring job enqueued", lane=self.lane.name, job_id=job.id)
        return enqueued

    async def run(self) -> None:
        logger.info(
            "Starting recurring job scheduler", job=self.name, cron=self.schedule.expression
        )

        while True:
            try:
                now = self.now()
                slot = self.schedule.next_after(now)
                await asyncio.sleep(max((slot - now).total_seconds(), 0))
                await self.fire(slot)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Error in recurring job scheduler",
                    job=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                # Wait a bit before retrying to avoid tight error loops
                await asyncio.sleep(RETRY_DELAY_SECONDS)

    async def start(self) -> None:
        await self.register()
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name=f"recurring-{self.name}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
