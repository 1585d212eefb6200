import asyncio

import pytest

from swstarter.infrastructure.background import TaskSupervisor


@pytest.mark.asyncio
async def test_spawn_returns_before_work_finishes():
    supervisor = TaskSupervisor("test")
    gate = asyncio.Event()

    async def work():
        await gate.wait()

    supervisor.spawn(work(), name="wait-for-gate")
    assert supervisor.pending == 1

    gate.set()
    await supervisor.drain()
    assert supervisor.pending == 0


@pytest.mark.asyncio
async def test_failures_are_counted_not_raised():
    supervisor = TaskSupervisor("test")

    async def boom():
        raise RuntimeError("lost")

    supervisor.spawn(boom())
    await supervisor.drain()

    assert supervisor.failures == 1


@pytest.mark.asyncio
async def test_aclose_cancels_stragglers():
    supervisor = TaskSupervisor("test")
    task = supervisor.spawn(asyncio.sleep(10))

    await supervisor.aclose(timeout=0.01)

    assert task.cancelled()
    assert supervisor.pending == 0
