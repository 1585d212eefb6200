"""
Service layer for query analytics.
"""

from .analytics_service import AnalyticsPipeline

__all__ = ["AnalyticsPipeline"]
