"""
Aggregation package for query analytics.

Turns the trailing window of raw query events into the statistics
snapshot served by the stats endpoint.
"""

from .service import QueryStatsAggregator, build_snapshot

__all__ = ["QueryStatsAggregator", "build_snapshot"]
