"""
Films API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, status

from swstarter.dependencies import get_swapi
from swstarter.errors import ResourceNotFoundError
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.models.domain.swapi_domain import Category
from swstarter.services.swapi_client import SwapiClient

logger = get_logger(__name__)

router = APIRouter(prefix="/api/films", tags=["films"])


@router.get("/{film_id}")
async def get_film(film_id: str, swapi: SwapiClient = Depends(get_swapi)):
    """Get a single film by upstream id."""
    try:
        film = await swapi.get_by_id(Category.FILMS, film_id)
        logger.info("Film retrieved successfully", film_id=film_id)
        return film

    except ResourceNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Film with ID {film_id} not found",
        )
    except Exception as e:
        logger.error("Error retrieving film", film_id=film_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve film data",
        )
