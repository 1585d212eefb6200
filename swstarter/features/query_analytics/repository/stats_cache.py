"""
Latest statistics snapshot, kept in Redis with its own expiry.
"""

from __future__ import annotations

from swstarter.features.query_analytics.domain import StatsSnapshot
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.infrastructure.redis_client import RedisClient

logger = get_logger(__name__)

STATS_KEY = "analytics:stats:latest"


class StatsCache:
    def __init__(self, redis_client: RedisClient, ttl_s: int = 600, key: str = STATS_KEY):
        if ttl_s <= 0:
            raise ValueError("Stats cache TTL must be positive")
        self.redis = redis_client
        self.ttl_s = ttl_s
        self.key = key

    async def set(self, snapshot: StatsSnapshot) -> None:
        """Replace the current snapshot; errors propagate to the aggregation job."""
        await self.redis.client.set(self.key, snapshot.to_json(), ex=self.ttl_s)

    async def get(self) -> StatsSnapshot | None:
        """Read the last written snapshot, or None if absent, expired or unreadable."""
        try:
            raw = await self.redis.client.get(self.key)
        except Exception as e:
            logger.error("Failed to read computed stats", error=str(e))
            return None

        if not raw:
            return None

        try:
            return StatsSnapshot.from_json(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Discarding unreadable stats snapshot", error=str(e))
            return None
