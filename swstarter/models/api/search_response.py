# swstarter/models/api/search_response.py
"""
Search API response models.
Used by routes for output formatting.
"""

from typing import Any

from pydantic import BaseModel, Field


class SearchResponse(BaseModel):
    """Response for a search across every category."""

    query: str = Field(..., description="Trimmed search term")
    totalResults: int = Field(..., description="Number of matches across all categories")
    results: dict[str, list[dict[str, Any]]] = Field(
        ..., description="Matches keyed by category name"
    )
    timestamp: str = Field(..., description="ISO-8601 response time")


class CategorySearchResponse(BaseModel):
    """Response for a search within one category."""

    category: str = Field(..., description="Category searched")
    query: str = Field(..., description="Trimmed search term")
    totalResults: int = Field(..., description="Number of matches")
    results: list[dict[str, Any]] = Field(..., description="Matching records")
    timestamp: str = Field(..., description="ISO-8601 response time")


class ErrorResponse(BaseModel):
    """Error body returned for every non-2xx response."""

    error: str = Field(..., description="HTTP reason phrase")
    message: str = Field(..., description="Human readable detail")
