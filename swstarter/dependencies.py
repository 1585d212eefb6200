"""
FastAPI dependencies resolving the components built in the app lifespan.
"""

from fastapi import Request

from swstarter.features.query_analytics import AnalyticsPipeline
from swstarter.infrastructure.redis_client import RedisClient
from swstarter.services.stats_service import StatsService
from swstarter.services.swapi_client import SwapiClient


def get_redis(request: Request) -> RedisClient:
    return request.app.state.redis


def get_swapi(request: Request) -> SwapiClient:
    return request.app.state.swapi


def get_analytics(request: Request) -> AnalyticsPipeline:
    return request.app.state.analytics


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.stats_service
