"""
Stats API Routes
Operator-facing statistics: upstream resource counts and query analytics.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from swstarter.dependencies import get_stats_service
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.models.api.stats_response import StatsResponse
from swstarter.services.stats_service import StatsService
from swstarter.utils.timestamps import iso_timestamp

logger = get_logger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(stats_service: StatsService = Depends(get_stats_service)):
    logger.info("Stats endpoint accessed")
    try:
        stats = await stats_service.get_stats()
    except Exception as e:
        logger.error("Error computing stats", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve statistics",
        )

    return StatsResponse(success=True, data=stats, timestamp=iso_timestamp())
