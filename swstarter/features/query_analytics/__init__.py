"""
Query analytics feature package.

Keeps every layer of the asynchronous search analytics pipeline together:
domain models, Redis repositories, the job queue, the aggregation step and
the service facade the HTTP routes talk to.
"""

from .domain import QueryEvent, StatsSnapshot  # noqa: F401
from .services import AnalyticsPipeline  # noqa: F401
