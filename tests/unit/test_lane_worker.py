"""
Tests for lane workers.
"""

import asyncio

import pytest

from swstarter.features.query_analytics.domain import Job
from swstarter.features.query_analytics.jobs import JobLane, LaneConfig, LaneWorker


def _lane(redis_client, clock, **overrides):
    config = {"name": "worker-lane", "retries": 1, "lock_ttl_s": 2}
    config.update(overrides)
    return JobLane(redis_client, LaneConfig(**config), clock=clock)


@pytest.mark.asyncio
async def test_process_next_runs_handler_and_completes(redis_client, clock):
    lane = _lane(redis_client, clock)
    seen = []

    async def handler(job):
        seen.append(job.id)

    worker = LaneWorker(lane, handler)
    job = Job.compute_stats()
    await lane.enqueue(job)

    assert (await worker.process_next()).id == job.id
    assert seen == [job.id]
    assert worker.completed == 1
    assert (await lane.counts())["completed"] == 1


@pytest.mark.asyncio
async def test_handler_failure_is_retried_then_recorded(redis_client, clock):
    lane = _lane(redis_client, clock)

    async def handler(job):
        raise RuntimeError("kaboom")

    worker = LaneWorker(lane, handler)
    await lane.enqueue(Job.compute_stats())

    await worker.process_next()
    assert (await lane.counts())["pending"] == 1

    await worker.process_next()
    counts = await lane.counts()
    assert counts["pending"] == 0
    assert counts["failed"] == 1
    assert worker.failed == 2


@pytest.mark.asyncio
async def test_process_next_on_empty_lane(redis_client, clock):
    worker = LaneWorker(_lane(redis_client, clock), handler=None)

    assert await worker.process_next() is None


@pytest.mark.asyncio
async def test_exclusive_lane_skips_while_mutex_held(redis_client, clock):
    lane = _lane(redis_client, clock, exclusive=True)

    async def handler(job):
        pass

    worker = LaneWorker(lane, handler)
    await lane.enqueue(Job.compute_stats())
    await lane.acquire_mutex("other-process")

    assert await worker.process_next() is None
    assert (await lane.counts())["pending"] == 1

    await lane.release_mutex("other-process")
    assert await worker.process_next() is not None
    # Released after the job
    assert await redis_client.client.get(lane.mutex_key) is None


@pytest.mark.asyncio
async def test_exclusive_lane_runs_one_job_at_a_time(redis_client, clock):
    lane = _lane(redis_client, clock, exclusive=True)
    running = 0
    peak = 0

    async def handler(job):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.05)
        running -= 1

    workers = [LaneWorker(lane, handler) for _ in range(3)]
    for _ in range(3):
        await lane.enqueue(Job.compute_stats())

    await asyncio.gather(*(w.process_next() for w in workers))

    assert peak == 1
    assert sum(w.completed for w in workers) == 1


@pytest.mark.asyncio
async def test_started_worker_drains_the_lane(redis_client, clock):
    lane = _lane(redis_client, clock, concurrency=3)
    done = []

    async def handler(job):
        done.append(job.id)

    worker = LaneWorker(lane, handler, poll_interval_s=0.01, blocking=False)
    for _ in range(5):
        await lane.enqueue(Job.compute_stats())

    await worker.start()
    try:
        for _ in range(200):
            if len(done) == 5:
                break
            await asyncio.sleep(0.01)
    finally:
        await worker.stop(grace_s=1)

    assert len(done) == 5
    assert worker.status()["running"] is False
    assert (await lane.counts())["completed"] == 5


@pytest.mark.asyncio
async def test_start_recovers_jobs_from_a_dead_worker(redis_client, clock):
    lane = _lane(redis_client, clock)
    await lane.enqueue(Job.compute_stats())
    abandoned = await lane.claim()
    await redis_client.client.delete(lane.lock_key(abandoned.id))
    # A previous sweep already saw it unlocked
    await lane.requeue_stalled()

    done = []

    async def handler(job):
        done.append(job.id)

    worker = LaneWorker(lane, handler, poll_interval_s=0.01, blocking=False)
    await worker.start()
    try:
        for _ in range(200):
            if done:
                break
            await asyncio.sleep(0.01)
    finally:
        await worker.stop(grace_s=1)

    assert done == [abandoned.id]
