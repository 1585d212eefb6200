"""
Job queue for query analytics: Redis-backed lanes, their workers and the
recurring stats schedule.
"""

from .cron import CronSchedule
from .queue import JobLane, LaneConfig
from .scheduler import RecurringJob
from .worker import LaneWorker

__all__ = ["CronSchedule", "JobLane", "LaneConfig", "LaneWorker", "RecurringJob"]
