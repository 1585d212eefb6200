"""
Query analytics pipeline.

Owns every analytics component and wires them together: search routes
record events, the event lane persists them, the stats lane recomputes
the snapshot on a cron schedule, and readers get the cached snapshot.
Built once at process startup and closed at shutdown.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from swstarter.config import Settings
from swstarter.errors import ConfigurationError, JobHandlerNotFoundError
from swstarter.features.query_analytics.domain import (
    Job,
    JobKind,
    QueryEvent,
    StatsSnapshot,
    epoch_millis,
)
from swstarter.features.query_analytics.jobs import (
    CronSchedule,
    JobLane,
    LaneConfig,
    LaneWorker,
    RecurringJob,
)
from swstarter.features.query_analytics.pipeline.aggregation import QueryStatsAggregator
from swstarter.features.query_analytics.repository import EventStore, StatsCache
from swstarter.infrastructure.background import TaskSupervisor
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.infrastructure.redis_client import RedisClient

logger = get_logger(__name__)

STATS_JOB_NAME = "compute-stats"

# Pooled connections kept free of blocking claims: stats lane, sweeps,
# scheduler, heartbeats and the enqueue/persist path
RESERVED_CONNECTIONS = 6


class AnalyticsPipeline:
    def __init__(
        self,
        redis_client: RedisClient,
        config: Settings,
        clock: Callable[[], int] = epoch_millis,
    ):
        self.redis_client = redis_client
        self.config = config
        self.clock = clock

        try:
            schedule = CronSchedule.parse(config.STATS_SCHEDULE)
            self.event_store = EventStore(
                redis_client,
                event_ttl_s=config.EVENT_TTL_SECONDS,
                counter_ttl_s=config.COUNTER_TTL_SECONDS,
                clock=clock,
            )
            self.stats_cache = StatsCache(redis_client, ttl_s=config.STATS_CACHE_TTL_SECONDS)
            self.event_lane = JobLane(
                redis_client, LaneConfig(**config.get_event_lane_config()), clock=clock
            )
            self.stats_lane = JobLane(
                redis_client, LaneConfig(**config.get_stats_lane_config()), clock=clock
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        self.aggregator = QueryStatsAggregator(
            self.event_store, window_s=config.STATS_WINDOW_SECONDS, clock=clock
        )
        self.tasks = TaskSupervisor("query-analytics")

        self._handlers: dict[JobKind, Callable[[Job], Awaitable[Any]]] = {
            JobKind.PERSIST_EVENT: self._persist_event,
            JobKind.COMPUTE_STATS: self._compute_stats,
        }

        self.event_worker = LaneWorker(
            self.event_lane,
            self.handle_job,
            poll_interval_s=config.JOB_POLL_INTERVAL_SECONDS,
            quiet=True,
            blocking=config.JOB_BLOCKING_CLAIMS,
        )
        self.stats_worker = LaneWorker(
            self.stats_lane, self.handle_job, poll_interval_s=config.JOB_POLL_INTERVAL_SECONDS
        )
        self.stats_schedule = RecurringJob(
            self.stats_lane,
            STATS_JOB_NAME,
            schedule,
            job_factory=lambda job_id: Job.compute_stats(
                job_id, priority=self.stats_lane.config.default_priority
            ),
        )
        self.workers_enabled = False

    async def start(self, run_workers: bool = True) -> None:
        """Start lane workers and the stats schedule; storage-only when run_workers is False."""
        if run_workers:
            self._check_pool_capacity()
            await self.event_worker.start()
            await self.stats_worker.start()
            await self.stats_schedule.start()
            self.workers_enabled = True

        logger.info(
            "Query analytics pipeline started",
            workers=run_workers,
            stats_schedule=self.config.STATS_SCHEDULE,
        )

    def _check_pool_capacity(self) -> None:
        """Blocking claims pin one connection per consumer; the rest of the pipeline needs room."""
        if not self.event_worker.blocking:
            return
        needed = self.event_lane.config.concurrency + RESERVED_CONNECTIONS
        available = self.redis_client.max_connections
        if available < needed:
            raise ConfigurationError(
                f"Redis pool of {available} connections cannot serve "
                f"{self.event_lane.config.concurrency} blocking event-lane consumers; "
                f"REDIS_MAX_CONNECTIONS must be at least {needed}"
            )

    async def close(self) -> None:
        # Flush pending enqueues before the workers go away
        await self.tasks.aclose()
        if self.workers_enabled:
            await self.stats_schedule.stop()
            await self.stats_worker.stop()
            await self.event_worker.stop()
            self.workers_enabled = False
        logger.info("Query analytics pipeline closed")

    # Ingress boundary

    def record_query_event(
        self,
        query: str,
        category: str | None,
        response_time_ms: float,
        result_count: int,
    ) -> None:
        """Fire-and-forget: queue the event for persistence and return at once."""
        try:
            event = QueryEvent(
                query=query,
                category=category,
                timestamp=self.clock(),
                response_time_ms=response_time_ms,
                result_count=result_count,
            )
        except ValueError as e:
            logger.error("Discarding invalid query event", query=query, error=str(e))
            return

        enqueue = self.event_lane.enqueue(Job.persist_event(event))
        try:
            self.tasks.spawn(enqueue, name="enqueue-query-event")
        except RuntimeError as e:
            # No running event loop to hand the work to
            enqueue.close()
            logger.error("Failed to add query to queue", query=event.query, error=str(e))

    # Reader boundary

    async def get_latest_stats(self) -> StatsSnapshot | None:
        return await self.stats_cache.get()

    async def run_aggregation(self) -> StatsSnapshot:
        """One aggregation cycle; on failure the cached snapshot is left as it was."""
        snapshot = await self.aggregator.compute_stats()
        await self.stats_cache.set(snapshot)
        return snapshot

    # Job handlers

    async def handle_job(self, job: Job) -> Any:
        handler = self._handlers.get(job.kind)
        if handler is None:
            raise JobHandlerNotFoundError(job.kind.value)
        return await handler(job)

    async def _persist_event(self, job: Job) -> None:
        event = job.event()
        logger.info("Processing query", query=event.query, category=event.category or "all")
        await self.event_store.put(event)

    async def _compute_stats(self, job: Job) -> None:
        logger.info("Computing statistics", job_id=job.id)
        snapshot = await self.run_aggregation()
        logger.info(
            "Statistics computed successfully",
            job_id=job.id,
            total_queries=snapshot.total_queries,
        )

    async def status(self) -> dict:
        return {
            "workers_enabled": self.workers_enabled,
            "pending_detached_tasks": self.tasks.pending,
            "lanes": {
                self.event_lane.name: {
                    **(await self.event_lane.counts()),
                    **self.event_worker.status(),
                },
                self.stats_lane.name: {
                    **(await self.stats_lane.counts()),
                    **self.stats_worker.status(),
                    "schedule": self.config.STATS_SCHEDULE,
                },
            },
        }
