"""
Standalone background worker runner.

Runs analytics work without the HTTP server. The job name comes from the
CLI args or the WORKER_JOB environment variable:

    python -m swstarter.jobs.worker analytics       # lane workers until stopped
    python -m swstarter.jobs.worker compute_stats   # one aggregation cycle
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from swstarter.config import settings
from swstarter.features.query_analytics import AnalyticsPipeline
from swstarter.infrastructure.observability.logging import get_logger, setup_logging
from swstarter.infrastructure.redis_client import RedisClient

logger = get_logger(__name__)

JobCoroutine = Callable[[AnalyticsPipeline], Awaitable[None]]


async def run_analytics_workers(pipeline: AnalyticsPipeline) -> None:
    """Run both lane workers and the stats schedule until cancelled."""
    await pipeline.start(run_workers=True)
    try:
        await asyncio.Event().wait()
    finally:
        await pipeline.close()


async def run_compute_stats(pipeline: AnalyticsPipeline) -> None:
    """Run a single aggregation cycle and exit."""
    await pipeline.start(run_workers=False)
    try:
        snapshot = await pipeline.run_aggregation()
        logger.info(
            "Statistics computed",
            total_queries=snapshot.total_queries,
            computed_at=snapshot.computed_at,
        )
    finally:
        await pipeline.close()


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "analytics": run_analytics_workers,
    "compute_stats": run_compute_stats,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "analytics").strip().lower()


async def run_worker(job_name: str | None = None, redis_client: RedisClient | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    owns_client = redis_client is None
    if owns_client:
        redis_client = RedisClient(
            settings.REDIS_URL,
            settings.REDIS_MAX_CONNECTIONS,
            pool_timeout_s=settings.REDIS_POOL_TIMEOUT_SECONDS,
        )
        await redis_client.initialize()

    logger.info("Starting background worker", job=name)
    try:
        await JOB_REGISTRY[name](AnalyticsPipeline(redis_client, settings))
    finally:
        if owns_client:
            await redis_client.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    try:
        asyncio.run(run_worker(job_name))
    except KeyboardInterrupt:
        logger.info("Background worker stopped", job=job_name)


if __name__ == "__main__":
    main()
