"""
Health Check Router - Alignment Chart
alignment_chart/routers/health.py

Reports the state of the remote cache and the local placement store.
A Redis outage degrades the service (every analysis becomes a cache miss)
but does not stop it.
"""

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from alignment_chart.config import settings
from alignment_chart.core.dependencies import get_local_store, get_remote_cache
from alignment_chart.core.exceptions import PersistenceError
from alignment_chart.services.redis_cache import RedisCache
from alignment_chart.session.local_store import LocalStore

router = APIRouter(tags=["Health"])


#  Schemas


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    dependencies: Dict[str, str]


#  Dependency Health Checks


async def check_redis(cache: RedisCache) -> str:
    """Check Redis connection health."""
    if await cache.ping():
        return "healthy"
    return "unhealthy: ping failed"


async def check_local_store(store: LocalStore) -> str:
    """Check the local store opens."""
    try:
        await store.initialize()
    except PersistenceError as e:
        message = str(e)
        return f"unhealthy: {message[:100]}"
    return f"healthy ({store.path})"


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "All dependencies healthy"},
        503: {"description": "One or more dependencies unhealthy"},
    },
    summary="Health check",
    description="Check health of all dependencies.",
)
async def health_check(
    cache: RedisCache = Depends(get_remote_cache),
    store: LocalStore = Depends(get_local_store),
):
    dependencies = {
        "redis": await check_redis(cache),
        "local_store": await check_local_store(store),
    }

    all_healthy = all(v.startswith("healthy") for v in dependencies.values())

    response = HealthResponse(
        status="healthy" if all_healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=settings.APP_VERSION,
        dependencies=dependencies,
    )

    if all_healthy:
        return response
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )
