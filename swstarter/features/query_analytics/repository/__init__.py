"""
Redis repositories for query analytics: raw events, counters and the
latest statistics snapshot.
"""

from .event_store import EventStore
from .stats_cache import StatsCache

__all__ = ["EventStore", "StatsCache"]
