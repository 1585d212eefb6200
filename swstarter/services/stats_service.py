"""
API statistics: upstream resource counts, runtime info and the latest
query analytics snapshot.
"""

import asyncio
import platform
import resource
import sys
import time

from swstarter.features.query_analytics import AnalyticsPipeline
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.models.domain.swapi_domain import Category
from swstarter.services.swapi_client import SwapiClient
from swstarter.utils.timestamps import iso_timestamp

logger = get_logger(__name__)

PROCESS_STARTED_AT = time.monotonic()


class StatsService:
    def __init__(
        self,
        swapi: SwapiClient,
        analytics: AnalyticsPipeline,
        count_cache_ttl_s: int = 300,
    ):
        self.swapi = swapi
        self.analytics = analytics
        self.count_cache_ttl_s = count_cache_ttl_s
        self._counts: dict[Category, int] | None = None
        self._counts_cached_at = 0.0

    async def _category_count(self, category: Category) -> int:
        try:
            return await self.swapi.count(category)
        except Exception as e:
            logger.error("Error getting count for category", category=category.value, error=str(e))
            return 0

    async def get_category_counts(self) -> dict[Category, int]:
        now = time.monotonic()
        if self._counts is not None and now - self._counts_cached_at < self.count_cache_ttl_s:
            return self._counts

        categories = list(Category)
        counts = await asyncio.gather(*(self._category_count(c) for c in categories))
        self._counts = dict(zip(categories, counts))
        self._counts_cached_at = now
        return self._counts

    @staticmethod
    def most_populated(counts: dict[Category, int]) -> dict:
        max_count = 0
        most_populated = "unknown"
        for category, count in counts.items():
            if count > max_count:
                max_count = count
                most_populated = category.value
        return {"category": most_populated, "count": max_count}

    @staticmethod
    def system_info() -> dict:
        usage = resource.getrusage(resource.RUSAGE_SELF)
        return {
            "uptime": round(time.monotonic() - PROCESS_STARTED_AT, 3),
            "maxRssKb": usage.ru_maxrss,
            "pythonVersion": platform.python_version(),
            "platform": sys.platform,
        }

    async def get_query_stats(self) -> dict:
        snapshot = await self.analytics.get_latest_stats()
        if snapshot is None:
            return {
                "topQueries": [],
                "averageResponseTime": 0,
                "popularHours": [],
                "totalQueries": 0,
                "lastComputed": None,
            }

        data = snapshot.to_dict()
        return {
            "topQueries": data["topQueries"],
            "averageResponseTime": data["averageResponseTimeMs"],
            "popularHours": data["popularHours"],
            "totalQueries": data["totalQueries"],
            "lastComputed": iso_timestamp(snapshot.computed_at),
        }

    async def get_stats(self) -> dict:
        counts, query_stats = await asyncio.gather(
            self.get_category_counts(), self.get_query_stats()
        )

        stats = {
            "totalResources": sum(counts.values()),
            "categoryCounts": {category.value: count for category, count in counts.items()},
            "mostPopulatedCategory": self.most_populated(counts),
            "systemInfo": self.system_info(),
            "queryStats": query_stats,
            "lastUpdated": iso_timestamp(),
        }
        logger.info("Stats computed successfully", total_resources=stats["totalResources"])
        return stats
