"""
Query statistics aggregation.

Every cycle rescans the trailing window of raw events and rebuilds the
snapshot from scratch. The rolling counters are not consulted here; a full
rescan keeps the window exact without incremental bookkeeping.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence

from swstarter.features.query_analytics.domain import (
    HourStat,
    QueryEvent,
    QueryStat,
    StatsSnapshot,
    epoch_millis,
    event_hour,
    normalize_query,
)
from swstarter.features.query_analytics.repository import EventStore
from swstarter.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TOP_QUERY_LIMIT = 5


def _percentage(count: int, total: int) -> float:
    return (count / total) * 100 if total else 0.0


def compute_top_queries(
    events: Sequence[QueryEvent], limit: int = TOP_QUERY_LIMIT
) -> list[QueryStat]:
    # Counter keeps first-seen order, and sorted() is stable, so ties stay in scan order
    counts = Counter(normalize_query(event.query) for event in events)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]
    total = len(events)
    return [QueryStat(query, count, _percentage(count, total)) for query, count in ranked]


def compute_average_response_time(events: Sequence[QueryEvent]) -> float:
    if not events:
        return 0.0
    return sum(event.response_time_ms for event in events) / len(events)


def compute_popular_hours(events: Sequence[QueryEvent]) -> list[HourStat]:
    counts = Counter(event_hour(event.timestamp) for event in events)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    total = len(events)
    return [HourStat(hour, count, _percentage(count, total)) for hour, count in ranked]


def build_snapshot(events: Sequence[QueryEvent], computed_at: int) -> StatsSnapshot:
    return StatsSnapshot(
        top_queries=tuple(compute_top_queries(events)),
        average_response_time_ms=compute_average_response_time(events),
        popular_hours=tuple(compute_popular_hours(events)),
        total_queries=len(events),
        computed_at=computed_at,
    )


class QueryStatsAggregator:
    WINDOW_SECONDS = 24 * 60 * 60

    def __init__(
        self,
        event_store: EventStore,
        window_s: int = WINDOW_SECONDS,
        clock: Callable[[], int] = epoch_millis,
    ):
        self.event_store = event_store
        self.window_s = window_s
        self.clock = clock

    async def compute_stats(self) -> StatsSnapshot:
        now = self.clock()
        window_start = now - self.window_s * 1000

        events = await self.event_store.scan_window(window_start)
        snapshot = build_snapshot(events, computed_at=now)

        logger.info(
            "Query statistics computed",
            total_queries=snapshot.total_queries,
            distinct_top_queries=len(snapshot.top_queries),
            average_response_time_ms=round(snapshot.average_response_time_ms, 2),
        )
        return snapshot
