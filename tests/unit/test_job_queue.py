"""
Tests for Redis-backed job lanes.
"""

import pytest

from swstarter.features.query_analytics.domain import Job, JobKind
from swstarter.features.query_analytics.jobs import JobLane, LaneConfig


def _lane(redis_client, clock, **overrides):
    config = {"name": "test-lane", "retries": 2, "keep_completed": 3, "keep_failed": 2}
    config.update(overrides)
    return JobLane(redis_client, LaneConfig(**config), clock=clock)


@pytest.fixture
def lane(redis_client, clock):
    return _lane(redis_client, clock)


@pytest.mark.asyncio
async def test_enqueue_claim_complete(lane, make_event):
    job = Job.persist_event(make_event("luke"))
    assert await lane.enqueue(job) is True

    claimed = await lane.claim()

    assert claimed.id == job.id
    assert claimed.kind is JobKind.PERSIST_EVENT
    assert claimed.attempts == 1
    assert claimed.event().query == "luke"
    assert await lane.counts() == {"pending": 0, "processing": 1, "completed": 0, "failed": 0}

    await lane.complete(claimed)

    assert await lane.counts() == {"pending": 0, "processing": 0, "completed": 1, "failed": 0}
    [record] = await lane.history("completed")
    assert record["id"] == job.id
    assert record["status"] == "completed"


@pytest.mark.asyncio
async def test_claim_on_empty_lane_returns_none(lane):
    assert await lane.claim() is None


@pytest.mark.asyncio
async def test_jobs_are_claimed_in_fifo_order(lane):
    first = Job.compute_stats(priority=1)
    second = Job.compute_stats(priority=1)
    await lane.enqueue(first)
    await lane.enqueue(second)

    assert (await lane.claim()).id == first.id
    assert (await lane.claim()).id == second.id


@pytest.mark.asyncio
async def test_urgent_job_jumps_the_queue(redis_client, clock):
    lane = _lane(redis_client, clock, default_priority=10)
    routine = Job.compute_stats(priority=10)
    urgent = Job.compute_stats(priority=1)
    await lane.enqueue(routine)
    await lane.enqueue(urgent)

    assert (await lane.claim()).id == urgent.id


@pytest.mark.asyncio
async def test_failed_job_is_retried_then_moved_to_failed(lane):
    job = Job.compute_stats()
    await lane.enqueue(job)

    # retries=2: three attempts in total
    for attempt in (1, 2):
        claimed = await lane.claim()
        assert claimed.attempts == attempt
        assert await lane.fail(claimed, "boom") is True

    claimed = await lane.claim()
    assert claimed.attempts == 3
    assert await lane.fail(claimed, "boom") is False

    assert await lane.claim() is None
    [record] = await lane.history("failed")
    assert record["error"] == "boom"
    assert record["attempts"] == 3


@pytest.mark.asyncio
async def test_history_is_capped(lane):
    for _ in range(5):
        await lane.enqueue(Job.compute_stats())
        await lane.complete(await lane.claim())

    assert len(await lane.history("completed")) == 3


@pytest.mark.asyncio
async def test_failed_history_is_capped(redis_client, clock):
    lane = _lane(redis_client, clock, retries=0)
    for _ in range(4):
        await lane.enqueue(Job.compute_stats())
        await lane.fail(await lane.claim(), "boom")

    assert len(await lane.history("failed")) == 2


@pytest.mark.asyncio
async def test_dedupe_enqueues_an_id_once(lane):
    assert await lane.enqueue(Job.compute_stats("repeat:x:1"), dedupe=True) is True
    assert await lane.enqueue(Job.compute_stats("repeat:x:1"), dedupe=True) is False

    assert (await lane.counts())["pending"] == 1


@pytest.mark.asyncio
async def test_stalled_job_requeued_after_two_sweeps(lane, redis_client):
    job = Job.compute_stats()
    await lane.enqueue(job)
    claimed = await lane.claim()

    # Worker died: lock gone, id still in processing
    await redis_client.client.delete(lane.lock_key(claimed.id))

    assert await lane.requeue_stalled() == 0
    assert await lane.requeue_stalled() == 1

    reclaimed = await lane.claim()
    assert reclaimed.id == job.id
    assert reclaimed.attempts == 2


@pytest.mark.asyncio
async def test_locked_job_is_not_requeued(lane):
    await lane.enqueue(Job.compute_stats())
    await lane.claim()

    assert await lane.requeue_stalled() == 0
    assert await lane.requeue_stalled() == 0
    assert (await lane.counts())["processing"] == 1


@pytest.mark.asyncio
async def test_orphaned_id_is_dropped(lane, redis_client):
    await redis_client.client.lpush(lane.pending_key, "ghost")

    assert await lane.claim() is None
    assert await lane.counts() == {"pending": 0, "processing": 0, "completed": 0, "failed": 0}


@pytest.mark.asyncio
async def test_extend_lock_renews_ttl(lane, redis_client):
    await lane.enqueue(Job.compute_stats())
    job = await lane.claim()
    await redis_client.client.pexpire(lane.lock_key(job.id), 100)

    assert await lane.extend_lock(job) is True
    assert await redis_client.client.pttl(lane.lock_key(job.id)) > 1000


@pytest.mark.asyncio
async def test_mutex_is_exclusive_and_owner_only(lane):
    assert await lane.acquire_mutex("a") is True
    assert await lane.acquire_mutex("b") is False

    assert await lane.release_mutex("b") is False
    assert await lane.extend_mutex("a") is True
    assert await lane.release_mutex("a") is True

    assert await lane.acquire_mutex("b") is True


@pytest.mark.asyncio
async def test_register_repeat_is_idempotent(lane):
    assert await lane.register_repeat("compute-stats", "*/5 * * * *") is True
    assert await lane.register_repeat("compute-stats", "*/5 * * * *") is False
    assert await lane.register_repeat("compute-stats", "*/10 * * * *") is True


def test_invalid_lane_config_rejected():
    with pytest.raises(ValueError):
        LaneConfig(name="bad", concurrency=0)
    with pytest.raises(ValueError):
        LaneConfig(name="bad", retries=-1)
