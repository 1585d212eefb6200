"""
Tests for query statistics aggregation.
"""

from datetime import datetime

import pytest

from swstarter.features.query_analytics.domain import QueryEvent
from swstarter.features.query_analytics.pipeline.aggregation import (
    QueryStatsAggregator,
    build_snapshot,
)
from swstarter.features.query_analytics.pipeline.aggregation.service import (
    compute_average_response_time,
    compute_popular_hours,
    compute_top_queries,
)
from swstarter.features.query_analytics.repository import EventStore


def _at(hour: int, minute: int = 0, query: str = "luke", response_time_ms: float = 100.0):
    ts = int(datetime(2026, 3, 10, hour, minute).timestamp() * 1000)
    return QueryEvent(
        query=query, timestamp=ts, response_time_ms=response_time_ms, result_count=1
    )


def test_top_queries_group_case_insensitively():
    events = [
        _at(9, query="Luke", response_time_ms=100),
        _at(9, 5, query="luke", response_time_ms=200),
        _at(14, query="Leia", response_time_ms=300),
    ]

    top = compute_top_queries(events)

    assert [(q.query, q.count) for q in top] == [("luke", 2), ("leia", 1)]
    assert top[0].percentage == pytest.approx(66.67, abs=0.01)
    assert top[1].percentage == pytest.approx(33.33, abs=0.01)


def test_snapshot_for_luke_and_leia():
    events = [
        _at(9, query="Luke", response_time_ms=100),
        _at(9, 30, query="luke", response_time_ms=200),
        _at(14, query="Leia", response_time_ms=300),
    ]

    snapshot = build_snapshot(events, computed_at=123)

    assert snapshot.total_queries == 3
    assert snapshot.average_response_time_ms == pytest.approx(200.0)
    assert [(h.hour, h.count) for h in snapshot.popular_hours] == [(9, 2), (14, 1)]
    assert snapshot.popular_hours[0].percentage == pytest.approx(66.67, abs=0.01)
    assert snapshot.computed_at == 123


def test_empty_window_yields_zeroed_snapshot():
    snapshot = build_snapshot([], computed_at=1)

    assert snapshot.total_queries == 0
    assert snapshot.top_queries == ()
    assert snapshot.popular_hours == ()
    assert snapshot.average_response_time_ms == 0.0


def test_top_queries_limited_to_five():
    events = [_at(10, query=f"q{i}") for i in range(8)]

    assert len(compute_top_queries(events)) == 5


def test_top_query_percentages_are_share_of_all_queries():
    events = [_at(10, query=f"q{i}") for i in range(8)]

    top = compute_top_queries(events)

    assert all(q.percentage == pytest.approx(12.5) for q in top)
    assert sum(q.percentage for q in top) == pytest.approx(62.5)


def test_top_query_percentages_sum_to_hundred_when_all_fit():
    events = [_at(10, query=q) for q in ("luke", "luke", "leia", "han", "yoda", "r2")]

    assert sum(q.percentage for q in compute_top_queries(events)) == pytest.approx(100.0)


def test_snapshot_top_query_share_of_five_searches():
    events = [_at(10, query="Luke") for _ in range(3)] + [_at(11, query="Leia") for _ in range(2)]

    snapshot = build_snapshot(events, computed_at=1)

    first = snapshot.top_queries[0]
    assert (first.query, first.count) == ("luke", 3)
    assert first.percentage == pytest.approx(60.0)
    assert snapshot.average_response_time_ms == pytest.approx(100.0)
    assert snapshot.total_queries == 5


def test_ties_keep_first_seen_order():
    events = [_at(10, query="yoda"), _at(10, query="han"), _at(10, query="chewie")]

    assert [q.query for q in compute_top_queries(events)] == ["yoda", "han", "chewie"]


def test_hour_percentages_sum_to_hundred():
    events = [_at(h % 24, query="x") for h in range(0, 40, 3)]

    hours = compute_popular_hours(events)

    assert sum(h.count for h in hours) == len(events)
    assert sum(h.percentage for h in hours) == pytest.approx(100.0)


def test_average_response_time():
    events = [_at(1, response_time_ms=10), _at(2, response_time_ms=30)]

    assert compute_average_response_time(events) == 20


@pytest.mark.asyncio
async def test_aggregator_reads_only_the_window(redis_client, clock, make_event):
    store = EventStore(redis_client, clock=clock)
    await store.put(make_event("luke", ago_s=60))
    await store.put(make_event("leia", ago_s=3 * 3600))

    aggregator = QueryStatsAggregator(store, window_s=3600, clock=clock)
    snapshot = await aggregator.compute_stats()

    assert snapshot.total_queries == 1
    assert snapshot.top_queries[0].query == "luke"
    assert snapshot.computed_at == clock()
