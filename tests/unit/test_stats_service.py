from unittest.mock import AsyncMock, MagicMock

import pytest

from swstarter.features.query_analytics.domain import HourStat, QueryStat, StatsSnapshot
from swstarter.models.domain.swapi_domain import Category
from swstarter.services.stats_service import StatsService

COUNTS = {
    Category.PEOPLE: 82,
    Category.FILMS: 6,
    Category.STARSHIPS: 36,
    Category.VEHICLES: 39,
    Category.SPECIES: 37,
    Category.PLANETS: 60,
}


def _service(snapshot=None, count=None, count_cache_ttl_s=300):
    swapi = MagicMock()
    swapi.count = count or AsyncMock(side_effect=lambda category: COUNTS[category])
    analytics = MagicMock()
    analytics.get_latest_stats = AsyncMock(return_value=snapshot)
    return StatsService(swapi, analytics, count_cache_ttl_s=count_cache_ttl_s), swapi


@pytest.mark.asyncio
async def test_stats_without_snapshot_use_empty_query_stats():
    service, _ = _service()

    stats = await service.get_stats()

    assert stats["totalResources"] == 260
    assert stats["categoryCounts"]["people"] == 82
    assert stats["mostPopulatedCategory"] == {"category": "people", "count": 82}
    assert stats["queryStats"] == {
        "topQueries": [],
        "averageResponseTime": 0,
        "popularHours": [],
        "totalQueries": 0,
        "lastComputed": None,
    }
    assert "uptime" in stats["systemInfo"]


@pytest.mark.asyncio
async def test_stats_mirror_latest_snapshot():
    snapshot = StatsSnapshot(
        top_queries=(QueryStat("luke", 2, 66.67),),
        average_response_time_ms=150.0,
        popular_hours=(HourStat(9, 2, 100.0),),
        total_queries=2,
        computed_at=0,
    )
    service, _ = _service(snapshot)

    query_stats = (await service.get_stats())["queryStats"]

    assert query_stats["topQueries"] == [{"query": "luke", "count": 2, "percentage": 66.67}]
    assert query_stats["averageResponseTime"] == 150.0
    assert query_stats["totalQueries"] == 2
    assert query_stats["lastComputed"] == "1970-01-01T00:00:00.000Z"


@pytest.mark.asyncio
async def test_failed_category_counts_as_zero():
    async def count(category):
        if category is Category.FILMS:
            raise RuntimeError("upstream down")
        return COUNTS[category]

    service, _ = _service(count=AsyncMock(side_effect=count))

    counts = await service.get_category_counts()

    assert counts[Category.FILMS] == 0
    assert counts[Category.PEOPLE] == 82


@pytest.mark.asyncio
async def test_category_counts_are_cached():
    service, swapi = _service()

    await service.get_category_counts()
    await service.get_category_counts()
    assert swapi.count.await_count == len(Category)


@pytest.mark.asyncio
async def test_category_counts_refetched_after_cache_ttl():
    service, swapi = _service(count_cache_ttl_s=0)

    await service.get_category_counts()
    await service.get_category_counts()

    assert swapi.count.await_count == 2 * len(Category)


def test_most_populated_with_no_resources():
    assert StatsService.most_populated({}) == {"category": "unknown", "count": 0}
