"""
People API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, status

from swstarter.dependencies import get_swapi
from swstarter.errors import ResourceNotFoundError
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.models.domain.swapi_domain import Category
from swstarter.services.swapi_client import SwapiClient

logger = get_logger(__name__)

router = APIRouter(prefix="/api/people", tags=["people"])


@router.get("/{person_id}")
async def get_person(person_id: str, swapi: SwapiClient = Depends(get_swapi)):
    """Get a single person by upstream id."""
    try:
        person = await swapi.get_by_id(Category.PEOPLE, person_id)
        logger.info("Person retrieved successfully", person_id=person_id)
        return person

    except ResourceNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Person with ID {person_id} not found",
        )
    except Exception as e:
        logger.error("Error retrieving person", person_id=person_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve person data",
        )
