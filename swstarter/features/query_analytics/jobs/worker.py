"""
Lane workers.

A LaneWorker runs ``concurrency`` consumer loops against one JobLane plus a
maintenance loop that sweeps stalled jobs. Handler failures are logged and
handed back to the lane's retry policy; they never stop the loop.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from swstarter.features.query_analytics.domain import Job
from swstarter.infrastructure.observability.logging import get_logger, log_job_outcome

from .queue import JobLane

logger = get_logger(__name__)

JobHandler = Callable[[Job], Awaitable[Any]]

POLL_INTERVAL_SECONDS = 1.0
ERROR_BACKOFF_SECONDS = 5.0
SHUTDOWN_GRACE_SECONDS = 10.0


class LaneWorker:
    def __init__(
        self,
        lane: JobLane,
        handler: JobHandler,
        poll_interval_s: float = POLL_INTERVAL_SECONDS,
        quiet: bool = False,
        blocking: bool = True,
    ):
        self.lane = lane
        self.handler = handler
        self.poll_interval_s = poll_interval_s
        # Exclusive lanes poll: they must hold the mutex before claiming
        self.blocking = blocking and not lane.config.exclusive
        self.quiet = quiet
        self.completed = 0
        self.failed = 0
        self._tasks: list[asyncio.Task] = []
        self._stopping = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        if self.is_running:
            return

        self._stopping.clear()
        await self.lane.requeue_stalled()

        for index in range(self.lane.config.concurrency):
            self._tasks.append(
                asyncio.create_task(self._consume(), name=f"{self.lane.name}-consumer-{index}")
            )
        self._tasks.append(
            asyncio.create_task(self._maintain(), name=f"{self.lane.name}-maintenance")
        )
        logger.info(
            "Lane worker started",
            lane=self.lane.name,
            concurrency=self.lane.config.concurrency,
            exclusive=self.lane.config.exclusive,
        )

    async def stop(self, grace_s: float = SHUTDOWN_GRACE_SECONDS) -> None:
        """Let in-flight jobs finish for ``grace_s`` seconds, then cancel."""
        if not self._tasks:
            return

        self._stopping.set()
        _, still_running = await asyncio.wait(self._tasks, timeout=grace_s)
        for task in still_running:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info(
            "Lane worker stopped",
            lane=self.lane.name,
            completed=self.completed,
            failed=self.failed,
        )

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _consume(self) -> None:
        while not self._stopping.is_set():
            try:
                block = self.poll_interval_s if self.blocking else None
                job = await self.process_next(block_timeout_s=block)
                if job is None and not self.blocking:
                    await self._sleep(self.poll_interval_s)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Lane consumer error",
                    lane=self.lane.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._sleep(ERROR_BACKOFF_SECONDS)

    async def _maintain(self) -> None:
        while not self._stopping.is_set():
            await self._sleep(self.lane.config.lock_ttl_s)
            if self._stopping.is_set():
                break
            try:
                await self.lane.requeue_stalled()
            except Exception as e:
                logger.error("Stalled job sweep failed", lane=self.lane.name, error=str(e))

    async def process_next(self, block_timeout_s: float | None = None) -> Job | None:
        """Claim and run at most one job; returns it, or None if nothing was run."""
        if not self.lane.config.exclusive:
            job = await self.lane.claim(block_timeout_s)
            if job is not None:
                await self._run(job)
            return job

        # Exclusive lanes hold the lane mutex for the whole job, across processes
        token = uuid.uuid4().hex
        if not await self.lane.acquire_mutex(token):
            return None
        try:
            job = await self.lane.claim()
            if job is not None:
                await self._run(job, mutex_token=token)
            return job
        finally:
            await self.lane.release_mutex(token)

    async def _heartbeat(self, job: Job, mutex_token: str | None) -> None:
        interval = max(self.lane.config.lock_ttl_s / 3, 0.1)
        while True:
            await asyncio.sleep(interval)
            await self.lane.extend_lock(job)
            if mutex_token:
                await self.lane.extend_mutex(mutex_token)

    async def _run(self, job: Job, mutex_token: str | None = None) -> None:
        heartbeat = asyncio.create_task(self._heartbeat(job, mutex_token))
        try:
            await self.handler(job)
        except Exception as e:
            will_retry = await self.lane.fail(job, str(e))
            self.failed += 1
            log_job_outcome(
                lane=self.lane.name,
                job_id=job.id,
                kind=job.kind.value,
                succeeded=False,
                attempts=job.attempts,
                error=str(e),
            )
            if will_retry:
                logger.warning("Job scheduled for retry", lane=self.lane.name, job_id=job.id)
        else:
            await self.lane.complete(job)
            self.completed += 1
            log_job_outcome(
                lane=self.lane.name,
                job_id=job.id,
                kind=job.kind.value,
                succeeded=True,
                attempts=job.attempts,
                quiet=self.quiet,
            )
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)

    def status(self) -> dict:
        return {
            "lane": self.lane.name,
            "running": self.is_running,
            "concurrency": self.lane.config.concurrency,
            "completed": self.completed,
            "failed": self.failed,
        }
