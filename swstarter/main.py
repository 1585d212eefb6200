"""
FastAPI application: search API, stats endpoint and the query analytics
pipeline, with explicit component lifecycle management.
"""

import time
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from swstarter.config import Settings, settings
from swstarter.errors import ResourceNotFoundError, UpstreamError
from swstarter.features.query_analytics import AnalyticsPipeline
from swstarter.infrastructure.observability.logging import get_logger, log_request, setup_logging
from swstarter.infrastructure.redis_client import RedisClient
from swstarter.middleware import CORSMiddleware, RequestContextMiddleware
from swstarter.routes import films, health, people, search, stats
from swstarter.services.stats_service import StatsService
from swstarter.services.swapi_client import SwapiClient

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


def _error_body(status_code: int, message: str) -> dict:
    return {"error": HTTPStatus(status_code).phrase, "message": message}


async def _close_quietly(name: str, close, errors: list[str]) -> None:
    try:
        logger.info("Closing component", component=name)
        await close()
    except Exception as e:
        logger.error("Error closing component", component=name, error=str(e))
        errors.append(f"{name}: {e}")


def create_app(config: Settings = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build every component, fail startup if Redis is unreachable."""
        logger.info("Application starting", environment=config.environment, debug=config.debug)

        started: list[tuple[str, object]] = []

        try:
            logger.info("Initializing Redis connection")
            redis_client = RedisClient(
                config.REDIS_URL,
                config.REDIS_MAX_CONNECTIONS,
                pool_timeout_s=config.REDIS_POOL_TIMEOUT_SECONDS,
            )
            await redis_client.initialize()
            started.append(("redis", redis_client.close))

            swapi = SwapiClient(config.SWAPI_BASE_URL, timeout_s=config.SWAPI_TIMEOUT_SECONDS)
            started.append(("swapi", swapi.close))

            logger.info("Starting query analytics pipeline")
            analytics = AnalyticsPipeline(redis_client, config)
            await analytics.start(run_workers=config.ANALYTICS_WORKERS_ENABLED)
            started.append(("analytics", analytics.close))

            app.state.redis = redis_client
            app.state.swapi = swapi
            app.state.analytics = analytics
            app.state.stats_service = StatsService(
                swapi, analytics, count_cache_ttl_s=config.RESOURCE_COUNT_CACHE_SECONDS
            )

            logger.info("All services initialized successfully", services=[n for n, _ in started])

        except Exception as e:
            logger.error(
                "Failed to initialize services",
                error=str(e),
                completed_tasks=[n for n, _ in started],
            )
            cleanup_errors: list[str] = []
            for name, close in reversed(started):
                await _close_quietly(name, close, cleanup_errors)
            raise

        yield

        # Shutdown sequence (reverse order)
        logger.info("Application shutting down")
        shutdown_errors: list[str] = []
        for name, close in reversed(started):
            await _close_quietly(name, close, shutdown_errors)

        if shutdown_errors:
            logger.warning("Some services had shutdown errors", errors=shutdown_errors)
        else:
            logger.info("All services closed successfully")

    app = FastAPI(
        title="SWStarter",
        description="Star Wars search API with query analytics",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(search.router)
    app.include_router(people.router)
    app.include_router(films.router)
    app.include_router(stats.router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content=_error_body(400, message))

    @app.exception_handler(ResourceNotFoundError)
    async def not_found_handler(request: Request, exc: ResourceNotFoundError):
        return JSONResponse(status_code=404, content=_error_body(404, str(exc)))

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        logger.error("Upstream request failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=502, content=_error_body(502, "Upstream service failed"))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        message = str(exc) if config.debug else "Something went wrong"
        return JSONResponse(status_code=500, content=_error_body(500, message))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests with timing."""
        start_time = time.time()
        response = await call_next(request)
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
            request_id=getattr(request.state, "request_id", None),
        )
        return response

    # Added last so they wrap the logging middleware
    app.add_middleware(
        CORSMiddleware, allowed_origins=config.CORS_ALLOWED_ORIGINS, allow_credentials=True
    )
    app.add_middleware(RequestContextMiddleware)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
