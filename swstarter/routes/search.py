"""
Search API Routes
Cross-category and per-category search against the Star Wars API. Every
successful search is recorded for query analytics without delaying the
response.
"""

import time

from fastapi import APIRouter, Depends, HTTPException, status

from swstarter.dependencies import get_analytics, get_swapi
from swstarter.features.query_analytics import AnalyticsPipeline
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.models.api.search_response import CategorySearchResponse, SearchResponse
from swstarter.models.domain.swapi_domain import Category
from swstarter.services.swapi_client import SwapiClient
from swstarter.utils.timestamps import iso_timestamp

logger = get_logger(__name__)

router = APIRouter(prefix="/api/search", tags=["search"])


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


@router.get("", response_model=SearchResponse)
async def search(
    query: str | None = None,
    swapi: SwapiClient = Depends(get_swapi),
    analytics: AnalyticsPipeline = Depends(get_analytics),
):
    """Search every category for ``query``."""
    started = time.perf_counter()

    if not query:
        logger.warning("Search request without query parameter")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Query parameter is required"
        )
    term = query.strip()
    if not term:
        logger.warning("Invalid query parameter")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query parameter must be a non-empty string",
        )

    results = await swapi.search_all(term)
    total_results = sum(len(records) for records in results.values())
    response_time_ms = _elapsed_ms(started)

    logger.info(
        "Search completed",
        query=term,
        total_results=total_results,
        response_time_ms=response_time_ms,
    )
    analytics.record_query_event(term, None, response_time_ms, total_results)

    return SearchResponse(
        query=term,
        totalResults=total_results,
        results={category.value: records for category, records in results.items()},
        timestamp=iso_timestamp(),
    )


@router.get("/{category}", response_model=CategorySearchResponse)
async def search_by_category(
    category: str,
    query: str | None = None,
    swapi: SwapiClient = Depends(get_swapi),
    analytics: AnalyticsPipeline = Depends(get_analytics),
):
    """Search a single category for ``query``."""
    started = time.perf_counter()

    if not query:
        logger.warning("Search request without query parameter", category=category)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Query parameter is required"
        )

    if category not in Category.names():
        logger.warning("Invalid category requested", category=category)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid category. Valid categories are: {', '.join(Category.names())}",
        )

    term = query.strip()
    results = await swapi.search(Category(category), term)
    response_time_ms = _elapsed_ms(started)

    logger.info(
        "Category search completed",
        category=category,
        query=term,
        total_results=len(results),
        response_time_ms=response_time_ms,
    )
    analytics.record_query_event(term, category, response_time_ms, len(results))

    return CategorySearchResponse(
        category=category,
        query=term,
        totalResults=len(results),
        results=results,
        timestamp=iso_timestamp(),
    )
