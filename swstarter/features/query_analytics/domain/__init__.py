"""
Domain layer for query analytics.
"""

from .models import (
    HourStat,
    Job,
    JobKind,
    QueryEvent,
    QueryStat,
    StatsSnapshot,
    epoch_millis,
    event_hour,
    normalize_query,
)

__all__ = [
    "HourStat",
    "Job",
    "JobKind",
    "QueryEvent",
    "QueryStat",
    "StatsSnapshot",
    "epoch_millis",
    "event_hour",
    "normalize_query",
]
