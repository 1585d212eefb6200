"""
Durable job lanes on Redis lists.

A lane is a pending list, a processing list and one hash per job. Workers
move a job id from pending to processing in one atomic LMOVE/BLMOVE and
hold a short claim lock while they work. Ids left in processing without a
lock belong to a worker that died; the stalled sweep puts them back, so
delivery is at-least-once.

Key layout (prefix ``queue:{lane}``):
    :pending         list of job ids, consumed from the right
    :processing      list of claimed job ids
    :job:{id}        job hash
    :lock:{id}       claim lock, PX = lock TTL
    :completed       capped list of JSON outcome records
    :failed          capped list of JSON outcome records
    :dedupe:{id}     marker making enqueue-by-id idempotent
    :repeat:{name}   recurring schedule registration
    :active          lane mutex for exclusive lanes
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as redis

from swstarter.features.query_analytics.domain import Job, epoch_millis
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.infrastructure.redis_client import RedisClient

logger = get_logger(__name__)

DEDUPE_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class LaneConfig:
    name: str
    concurrency: int = 1
    retries: int = 1
    keep_completed: int = 100
    keep_failed: int = 50
    default_priority: int = 1
    lock_ttl_s: int = 30
    exclusive: bool = False

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError("Lane concurrency must be at least 1")
        if self.retries < 0:
            raise ValueError("Lane retries cannot be negative")
        if self.lock_ttl_s <= 0:
            raise ValueError("Lane lock TTL must be positive")


class JobLane:
    """One independently configured queue of jobs."""

    def __init__(
        self,
        redis_client: RedisClient,
        config: LaneConfig,
        clock: Callable[[], int] = epoch_millis,
    ):
        self.redis = redis_client
        self.config = config
        self.clock = clock
        self.prefix = f"queue:{config.name}"
        self._stall_suspects: set[str] = set()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def lock_ttl_ms(self) -> int:
        return self.config.lock_ttl_s * 1000

    # Keys

    @property
    def pending_key(self) -> str:
        return f"{self.prefix}:pending"

    @property
    def processing_key(self) -> str:
        return f"{self.prefix}:processing"

    @property
    def completed_key(self) -> str:
        return f"{self.prefix}:completed"

    @property
    def failed_key(self) -> str:
        return f"{self.prefix}:failed"

    @property
    def mutex_key(self) -> str:
        return f"{self.prefix}:active"

    def job_key(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    def lock_key(self, job_id: str) -> str:
        return f"{self.prefix}:lock:{job_id}"

    def dedupe_key(self, job_id: str) -> str:
        return f"{self.prefix}:dedupe:{job_id}"

    def repeat_key(self, name: str) -> str:
        return f"{self.prefix}:repeat:{name}"

    # Producer side

    async def enqueue(self, job: Job, dedupe: bool = False) -> bool:
        """
        Add a job to the lane.

        With ``dedupe`` the job id is reserved first, and a second enqueue of
        the same id is a no-op returning False.
        """
        client = self.redis.client
        if dedupe:
            reserved = await client.set(
                self.dedupe_key(job.id), "1", nx=True, ex=DEDUPE_TTL_SECONDS
            )
            if not reserved:
                logger.debug("Duplicate job ignored", lane=self.name, job_id=job.id)
                return False

        job.enqueued_at = self.clock()
        async with client.pipeline(transaction=True) as pipe:
            pipe.hset(self.job_key(job.id), mapping=job.to_mapping())
            if job.priority < self.config.default_priority:
                # More urgent than the lane default: next in line
                pipe.rpush(self.pending_key, job.id)
            else:
                pipe.lpush(self.pending_key, job.id)
            await pipe.execute()

        logger.debug("Job enqueued", lane=self.name, job_id=job.id, kind=job.kind.value)
        return True

    # Consumer side

    async def claim(self, block_timeout_s: float | None = None) -> Job | None:
        """Move the next job to processing and lock it; None when the lane is empty."""
        client = self.redis.client
        if block_timeout_s:
            job_id = await client.blmove(
                self.pending_key, self.processing_key, block_timeout_s, "RIGHT", "LEFT"
            )
        else:
            job_id = await client.lmove(self.pending_key, self.processing_key, "RIGHT", "LEFT")

        if job_id is None:
            return None

        async with client.pipeline(transaction=True) as pipe:
            pipe.set(self.lock_key(job_id), uuid.uuid4().hex, px=self.lock_ttl_ms)
            pipe.hincrby(self.job_key(job_id), "attempts", 1)
            pipe.hgetall(self.job_key(job_id))
            _, _, data = await pipe.execute()

        if not data or "kind" not in data:
            logger.warning("Dropping orphaned job id", lane=self.name, job_id=job_id)
            async with client.pipeline(transaction=True) as pipe:
                pipe.lrem(self.processing_key, 1, job_id)
                pipe.delete(self.lock_key(job_id), self.job_key(job_id))
                await pipe.execute()
            return None

        return Job.from_mapping(data)

    async def extend_lock(self, job: Job) -> bool:
        return bool(await self.redis.client.pexpire(self.lock_key(job.id), self.lock_ttl_ms))

    def _outcome_record(self, job: Job, status: str, error: str | None = None) -> str:
        record = {
            "id": job.id,
            "kind": job.kind.value,
            "status": status,
            "attempts": job.attempts,
            "enqueued_at": job.enqueued_at,
            "finished_at": self.clock(),
        }
        if error:
            record["error"] = error
        return json.dumps(record)

    async def complete(self, job: Job) -> None:
        async with self.redis.client.pipeline(transaction=True) as pipe:
            pipe.lrem(self.processing_key, 1, job.id)
            pipe.delete(self.job_key(job.id), self.lock_key(job.id))
            pipe.lpush(self.completed_key, self._outcome_record(job, "completed"))
            pipe.ltrim(self.completed_key, 0, self.config.keep_completed - 1)
            await pipe.execute()

    async def fail(self, job: Job, error: str) -> bool:
        """Record a failed attempt; returns True when the job was requeued for retry."""
        will_retry = job.attempts <= self.config.retries
        async with self.redis.client.pipeline(transaction=True) as pipe:
            pipe.lrem(self.processing_key, 1, job.id)
            pipe.delete(self.lock_key(job.id))
            if will_retry:
                pipe.hset(self.job_key(job.id), "last_error", error)
                pipe.lpush(self.pending_key, job.id)
            else:
                pipe.delete(self.job_key(job.id))
                pipe.lpush(self.failed_key, self._outcome_record(job, "failed", error))
                pipe.ltrim(self.failed_key, 0, self.config.keep_failed - 1)
            await pipe.execute()
        return will_retry

    async def requeue_stalled(self) -> int:
        """
        Return jobs abandoned by dead workers to the pending list.

        An id must be seen unlocked on two consecutive sweeps before it is
        moved; that skips jobs caught between the claim move and its lock.
        """
        client = self.redis.client
        processing = await client.lrange(self.processing_key, 0, -1)

        unlocked = set()
        for job_id in processing:
            if not await client.exists(self.lock_key(job_id)):
                unlocked.add(job_id)

        stalled = unlocked & self._stall_suspects
        self._stall_suspects = unlocked - stalled

        requeued = 0
        for job_id in stalled:
            async with client.pipeline(transaction=True) as pipe:
                pipe.lrem(self.processing_key, 1, job_id)
                pipe.rpush(self.pending_key, job_id)
                removed, _ = await pipe.execute()
            if removed:
                requeued += 1
            else:
                # Finished in the meantime; undo the push
                await client.lrem(self.pending_key, 1, job_id)

        if requeued:
            logger.warning("Requeued stalled jobs", lane=self.name, count=requeued)
        return requeued

    # Exclusive lanes

    async def acquire_mutex(self, token: str) -> bool:
        return bool(
            await self.redis.client.set(self.mutex_key, token, nx=True, px=self.lock_ttl_ms)
        )

    async def extend_mutex(self, token: str) -> bool:
        return await self._if_mutex_owner(
            token, lambda pipe: pipe.pexpire(self.mutex_key, self.lock_ttl_ms)
        )

    async def release_mutex(self, token: str) -> bool:
        return await self._if_mutex_owner(token, lambda pipe: pipe.delete(self.mutex_key))

    async def _if_mutex_owner(self, token: str, command) -> bool:
        async with self.redis.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(self.mutex_key)
                if await pipe.get(self.mutex_key) != token:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                command(pipe)
                await pipe.execute()
                return True
            except redis.WatchError:
                return False

    # Recurring registration and introspection

    async def register_repeat(self, name: str, cron: str) -> bool:
        """Record a recurring schedule; re-registering the same schedule changes nothing."""
        key = self.repeat_key(name)
        current = await self.redis.client.hget(key, "cron")
        if current == cron:
            return False
        await self.redis.client.hset(
            key, mapping={"cron": cron, "registered_at": str(self.clock())}
        )
        return True

    async def counts(self) -> dict[str, int]:
        async with self.redis.client.pipeline(transaction=False) as pipe:
            pipe.llen(self.pending_key)
            pipe.llen(self.processing_key)
            pipe.llen(self.completed_key)
            pipe.llen(self.failed_key)
            pending, processing, completed, failed = await pipe.execute()
        return {
            "pending": pending,
            "processing": processing,
            "completed": completed,
            "failed": failed,
        }

    async def history(self, status: str = "completed") -> list[dict]:
        key = self.completed_key if status == "completed" else self.failed_key
        return [json.loads(raw) for raw in await self.redis.client.lrange(key, 0, -1)]
