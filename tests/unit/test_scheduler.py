from datetime import datetime

import pytest

from swstarter.features.query_analytics.domain import Job
from swstarter.features.query_analytics.jobs import CronSchedule, JobLane, LaneConfig, RecurringJob


@pytest.fixture
def stats_lane(redis_client, clock):
    config = LaneConfig(name="stats", default_priority=10, exclusive=True)
    return JobLane(redis_client, config, clock=clock)


def _recurring(lane, now=datetime.now):
    return RecurringJob(
        lane,
        "compute-stats",
        CronSchedule.parse("*/5 * * * *"),
        job_factory=lambda job_id: Job.compute_stats(job_id),
        now=now,
    )


@pytest.mark.asyncio
async def test_one_job_per_slot_across_schedulers(stats_lane):
    slot = datetime(2026, 1, 1, 10, 5)
    first, second = _recurring(stats_lane), _recurring(stats_lane)

    assert await first.fire(slot) is True
    assert await second.fire(slot) is False
    assert await first.fire(slot) is False

    assert (await stats_lane.counts())["pending"] == 1
    job = await stats_lane.claim()
    assert job.id == first.slot_job_id(slot)


@pytest.mark.asyncio
async def test_next_slot_gets_its_own_job(stats_lane):
    recurring = _recurring(stats_lane)

    await recurring.fire(datetime(2026, 1, 1, 10, 5))
    await recurring.fire(datetime(2026, 1, 1, 10, 10))

    assert (await stats_lane.counts())["pending"] == 2


@pytest.mark.asyncio
async def test_register_is_idempotent(stats_lane, redis_client):
    recurring = _recurring(stats_lane)

    await recurring.register()
    await recurring.register()

    registration = await redis_client.client.hgetall(stats_lane.repeat_key("compute-stats"))
    assert registration["cron"] == "*/5 * * * *"


@pytest.mark.asyncio
async def test_start_and_stop(stats_lane):
    recurring = _recurring(stats_lane)

    await recurring.start()
    assert recurring._task is not None
    await recurring.stop()

    assert recurring._task is None
