# swstarter/models/api/stats_response.py
"""
Stats API response models.
"""

from typing import Any

from pydantic import BaseModel, Field


class QueryStatsResponse(BaseModel):
    topQueries: list[dict[str, Any]] = Field(default_factory=list)
    averageResponseTime: float = Field(0, description="Mean response time in ms")
    popularHours: list[dict[str, Any]] = Field(default_factory=list)
    totalQueries: int = Field(0, description="Queries in the aggregation window")
    lastComputed: str | None = Field(None, description="When the snapshot was computed")


class MostPopulatedCategory(BaseModel):
    category: str
    count: int


class StatsData(BaseModel):
    """Aggregated API statistics."""

    totalResources: int = Field(..., description="Sum of resources across categories")
    categoryCounts: dict[str, int] = Field(..., description="Resource count per category")
    mostPopulatedCategory: MostPopulatedCategory
    systemInfo: dict[str, Any] = Field(..., description="Process runtime information")
    queryStats: QueryStatsResponse
    lastUpdated: str = Field(..., description="When these stats were assembled")


class StatsResponse(BaseModel):
    success: bool = True
    data: StatsData
    timestamp: str
