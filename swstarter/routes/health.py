"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from swstarter.config import settings
from swstarter.dependencies import get_analytics, get_redis
from swstarter.features.query_analytics import AnalyticsPipeline
from swstarter.infrastructure.redis_client import RedisClient

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "swstarter-backend"}


@router.get("/readyz")
async def readyz(
    redis_client: RedisClient = Depends(get_redis),
    analytics: AnalyticsPipeline = Depends(get_analytics),
):
    """Readiness check covering Redis and the analytics pipeline."""
    checks = {}
    overall_ok = True

    # 1) Redis
    t0 = time.time()
    redis_ok = await redis_client.ping()
    checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
    overall_ok = overall_ok and redis_ok

    # 2) Analytics lanes
    if redis_ok:
        try:
            checks["analytics"] = {"ok": True, **(await analytics.status())}
        except Exception as e:
            checks["analytics"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            overall_ok = False
    else:
        checks["analytics"] = {"ok": False, "error": "redis unavailable"}

    body = {
        "overall_ok": overall_ok,
        "checks": checks,
        "environment": settings.environment,
        "timestamp": time.time(),
    }
    return JSONResponse(status_code=200 if overall_ok else 503, content=body)
