"""
Domain models for the query analytics feature.

These dataclasses describe the search events recorded by the ingress
routes, the jobs that move them through the queue, and the statistics
snapshot produced by each aggregation cycle. They carry no I/O so the
store, queue and aggregator can share them freely.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


def normalize_query(query: str) -> str:
    """Grouping key for a query: trimmed and case-folded."""
    return query.strip().lower()


def epoch_millis() -> int:
    return int(time.time() * 1000)


def event_hour(timestamp_ms: int) -> int:
    """Hour of day (0-23) in server local time."""
    return datetime.fromtimestamp(timestamp_ms / 1000).hour


@dataclass(frozen=True, slots=True)
class QueryEvent:
    """One observed search request."""

    query: str
    timestamp: int  # epoch millis
    response_time_ms: float
    result_count: int
    category: str | None = None  # None = cross-category search

    def __post_init__(self):
        if self.result_count < 0:
            raise ValueError("result_count must be >= 0")
        object.__setattr__(self, "query", self.query.strip())

    def to_mapping(self) -> dict[str, str]:
        """Flatten to string fields for a Redis hash."""
        return {
            "query": self.query,
            "category": self.category or "all",
            "timestamp": str(self.timestamp),
            "response_time_ms": repr(float(self.response_time_ms)),
            "result_count": str(self.result_count),
        }

    @classmethod
    def from_mapping(cls, data: dict[str, str]) -> QueryEvent:
        category = data.get("category")
        return cls(
            query=data["query"],
            category=None if category in (None, "", "all") else category,
            timestamp=int(data["timestamp"]),
            response_time_ms=float(data["response_time_ms"]),
            result_count=int(data["result_count"]),
        )


@dataclass(frozen=True, slots=True)
class QueryStat:
    query: str
    count: int
    percentage: float


@dataclass(frozen=True, slots=True)
class HourStat:
    hour: int
    count: int
    percentage: float


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    """Result of one aggregation cycle; replaced wholesale every cycle."""

    top_queries: tuple[QueryStat, ...]
    average_response_time_ms: float
    popular_hours: tuple[HourStat, ...]
    total_queries: int
    computed_at: int  # epoch millis

    def to_dict(self) -> dict[str, Any]:
        return {
            "topQueries": [asdict(q) for q in self.top_queries],
            "averageResponseTimeMs": self.average_response_time_ms,
            "popularHours": [asdict(h) for h in self.popular_hours],
            "totalQueries": self.total_queries,
            "computedAt": self.computed_at,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> StatsSnapshot:
        data = json.loads(raw)
        return cls(
            top_queries=tuple(QueryStat(**q) for q in data["topQueries"]),
            average_response_time_ms=data["averageResponseTimeMs"],
            popular_hours=tuple(HourStat(**h) for h in data["popularHours"]),
            total_queries=data["totalQueries"],
            computed_at=data["computedAt"],
        )


class JobKind(str, Enum):
    """Closed set of work the analytics lanes understand."""

    PERSIST_EVENT = "persist-event"
    COMPUTE_STATS = "compute-stats"


@dataclass(slots=True)
class Job:
    """A unit of queued work plus its delivery metadata."""

    kind: JobKind
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attempts: int = 0
    priority: int = 1
    enqueued_at: int = 0

    @classmethod
    def persist_event(cls, event: QueryEvent, priority: int = 1) -> Job:
        return cls(kind=JobKind.PERSIST_EVENT, payload=event.to_mapping(), priority=priority)

    @classmethod
    def compute_stats(cls, job_id: str | None = None, priority: int = 10) -> Job:
        job = cls(kind=JobKind.COMPUTE_STATS, priority=priority)
        if job_id:
            job.id = job_id
        return job

    def event(self) -> QueryEvent:
        return QueryEvent.from_mapping(self.payload)

    def to_mapping(self) -> dict[str, str]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "payload": json.dumps(self.payload),
            "attempts": str(self.attempts),
            "priority": str(self.priority),
            "enqueued_at": str(self.enqueued_at),
        }

    @classmethod
    def from_mapping(cls, data: dict[str, str]) -> Job:
        return cls(
            id=data["id"],
            kind=JobKind(data["kind"]),
            payload=json.loads(data.get("payload") or "{}"),
            attempts=int(data.get("attempts", 0)),
            priority=int(data.get("priority", 1)),
            enqueued_at=int(data.get("enqueued_at", 0)),
        )
