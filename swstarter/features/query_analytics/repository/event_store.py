"""
Redis-backed store for raw query events and rolling counters.

Each event lives in its own hash keyed by timestamp, expiring a fixed TTL
after the event happened. A sorted-set index scored by timestamp lets the
aggregator read a trailing window without scanning the keyspace. Hour and
query counters are incremented alongside the event in a single MULTI batch.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

from swstarter.features.query_analytics.domain import (
    QueryEvent,
    epoch_millis,
    event_hour,
    normalize_query,
)
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.infrastructure.redis_client import RedisClient

logger = get_logger(__name__)

KEY_PREFIX = "analytics"
SCAN_BATCH_SIZE = 500


class EventStore:
    def __init__(
        self,
        redis_client: RedisClient,
        event_ttl_s: int = 86400,
        counter_ttl_s: int = 86400,
        clock: Callable[[], int] = epoch_millis,
        prefix: str = KEY_PREFIX,
    ):
        if event_ttl_s <= 0 or counter_ttl_s <= 0:
            raise ValueError("TTL values must be positive")
        self.redis = redis_client
        self.event_ttl_s = event_ttl_s
        self.counter_ttl_s = counter_ttl_s
        self.clock = clock
        self.prefix = prefix
        self.index_key = f"{prefix}:events"

    def event_key(self, event: QueryEvent) -> str:
        return f"{self.prefix}:event:{event.timestamp}:{uuid.uuid4().hex[:8]}"

    def hour_counter_key(self, hour: int) -> str:
        return f"{self.prefix}:counter:hour:{hour}"

    def query_counter_key(self, query: str) -> str:
        return f"{self.prefix}:counter:query:{normalize_query(query)}"

    async def put(self, event: QueryEvent) -> str:
        """Persist one event and bump its counters atomically; returns the event key."""
        key = self.event_key(event)
        now = self.clock()
        ttl_ms = self.event_ttl_s * 1000
        hour_key = self.hour_counter_key(event_hour(event.timestamp))
        query_key = self.query_counter_key(event.query)

        async with self.redis.client.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping=event.to_mapping())
            # Lifetime is anchored to when the search happened, not when it was persisted
            pipe.pexpireat(key, event.timestamp + ttl_ms)
            pipe.zadd(self.index_key, {key: event.timestamp})
            pipe.zremrangebyscore(self.index_key, "-inf", f"({now - ttl_ms}")
            pipe.expire(self.index_key, self.event_ttl_s)
            pipe.incr(hour_key)
            pipe.expire(hour_key, self.counter_ttl_s)
            pipe.incr(query_key)
            pipe.expire(query_key, self.counter_ttl_s)
            await pipe.execute()

        logger.debug("Query event stored", key=key, query=event.query, category=event.category)
        return key

    async def scan_window(self, since_ms: int) -> list[QueryEvent]:
        """Return every live event with ``timestamp >= since_ms``, oldest first."""
        floor = max(since_ms, self.clock() - self.event_ttl_s * 1000)
        keys = await self.redis.client.zrangebyscore(self.index_key, floor, "+inf")

        events: list[QueryEvent] = []
        for start in range(0, len(keys), SCAN_BATCH_SIZE):
            batch = keys[start : start + SCAN_BATCH_SIZE]
            async with self.redis.client.pipeline(transaction=False) as pipe:
                for key in batch:
                    pipe.hgetall(key)
                rows = await pipe.execute()

            for key, row in zip(batch, rows):
                if not row:
                    # Hash already expired; the index entry is pruned on a later put
                    continue
                try:
                    event = QueryEvent.from_mapping(row)
                except (KeyError, ValueError) as e:
                    logger.warning("Skipping malformed query event", key=key, error=str(e))
                    continue
                if event.timestamp >= floor:
                    events.append(event)

        return events

    async def get_hour_counts(self) -> dict[int, int]:
        """Rolling per-hour counters; hours with no live counter are omitted."""
        keys = [self.hour_counter_key(hour) for hour in range(24)]
        values = await self.redis.client.mget(keys)
        return {hour: int(value) for hour, value in enumerate(values) if value is not None}

    async def get_query_count(self, query: str) -> int:
        value = await self.redis.client.get(self.query_counter_key(query))
        return int(value) if value is not None else 0
