"""
Star Wars API client.
Handles category search, lookups by id and resource counts, with retry on
transient upstream failures.
"""

import asyncio
from typing import Any

import httpx

from swstarter.errors import ResourceNotFoundError, UpstreamError
from swstarter.infrastructure.observability.logging import get_logger
from swstarter.models.domain.swapi_domain import Category, SwapiRecord

logger = get_logger(__name__)

# Request retry configuration
MAX_RETRIES = 3
BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

# One upstream collection per category
CATEGORY_PATHS: dict[Category, str] = {
    Category.PEOPLE: "/people/",
    Category.FILMS: "/films/",
    Category.STARSHIPS: "/starships/",
    Category.VEHICLES: "/vehicles/",
    Category.SPECIES: "/species/",
    Category.PLANETS: "/planets/",
}


class SwapiClient:
    """Async client for the public Star Wars API."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 5.0,
        backoff_factor: float = BACKOFF_FACTOR,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.backoff_factor = backoff_factor
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request_with_retry(self, url: str, **kwargs) -> httpx.Response:
        """Execute a GET with retry and backoff."""
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.get(url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    backoff = self.backoff_factor * (2 ** (attempt - 1))
                    logger.debug(
                        "SWAPI retrying request",
                        url=url,
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise UpstreamError(f"SWAPI request failed: {e}") from e
                backoff = self.backoff_factor * (2 ** (attempt - 1))
                logger.debug(
                    "SWAPI request error, retrying",
                    url=url,
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise UpstreamError("SWAPI retry loop exhausted")

    def _parse(self, response: httpx.Response, operation: str) -> dict[str, Any]:
        if not response.is_success:
            raise UpstreamError(
                f"SWAPI {operation} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            logger.error("Failed to parse SWAPI response", operation=operation, error=str(e))
            raise UpstreamError(f"Invalid response format: {e}") from e

    async def search(self, category: Category, query: str) -> list[SwapiRecord]:
        """Search one category; upstream failures yield an empty list."""
        try:
            response = await self._request_with_retry(
                CATEGORY_PATHS[category], params={"search": query}
            )
            return self._parse(response, f"search {category.value}").get("results", [])
        except UpstreamError as e:
            logger.error("Error searching category", category=category.value, error=str(e))
            return []

    async def search_all(self, query: str) -> dict[Category, list[SwapiRecord]]:
        """Search every category concurrently."""
        logger.info("Searching SWAPI", query=query)
        categories = list(Category)
        results = await asyncio.gather(*(self.search(category, query) for category in categories))
        return dict(zip(categories, results))

    async def get_by_id(self, category: Category, resource_id: str) -> SwapiRecord:
        url = f"{CATEGORY_PATHS[category]}{resource_id}/"
        response = await self._request_with_retry(url)
        if response.status_code == 404:
            raise ResourceNotFoundError(category.value, resource_id)
        return self._parse(response, f"get {category.value}")

    async def count(self, category: Category) -> int:
        """Total resources in a category as reported by the collection endpoint."""
        response = await self._request_with_retry(CATEGORY_PATHS[category])
        data = self._parse(response, f"count {category.value}")
        if "count" in data:
            return int(data["count"])
        return len(data.get("results", []))
