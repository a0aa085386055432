"""
Analysis Router - Alignment Chart
alignment_chart/routers/analysis.py

Runs the cache-aside alignment pipeline for one handle. Pipeline failures are
returned as a 200 payload with isError=true; only request validation fails
with a 4xx.
"""

import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from alignment_chart.config import settings
from alignment_chart.core.dependencies import get_orchestrator
from alignment_chart.models.alignment import AlignmentResult
from alignment_chart.models.enumerations import ErrorKind
from alignment_chart.pipelines.orchestrator import PipelineOrchestrator


router = APIRouter(prefix=settings.API_V1_PREFIX, tags=["Analysis"])


#  Validation Error Messages


FIELD_MESSAGES = {
    "handle": {
        "missing": "Handle is required",
        "string_too_short": "Handle cannot be empty",
        "string_too_long": "Handle must not exceed 200 characters",
        "string_type": "Handle must be a string",
    },
    "x": {
        "float_type": "Position x must be a number",
        "float_parsing": "Position x must be a valid number",
    },
    "y": {
        "float_type": "Position y must be a number",
        "float_parsing": "Position y must be a valid number",
    },
}

DEFAULT_MESSAGES = {
    "missing": "Field '{field}' is required",
    "bool_parsing": "Field '{field}' must be a boolean",
    "extra_forbidden": "Unknown field '{field}' is not allowed",
}


def get_validation_message(field: str, error_type: str) -> str:
    if field in FIELD_MESSAGES:
        for key in FIELD_MESSAGES[field]:
            if key in error_type:
                return FIELD_MESSAGES[field][key]
    for key, template in DEFAULT_MESSAGES.items():
        if key in error_type:
            return template.format(field=field)
    return f"Invalid value for field '{field}'"


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error_code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": None,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
    err = errors[0]
    error_type = err.get("type", "")
    loc = err.get("loc", [])
    if "json_invalid" in error_type:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error_code": "INVALID_REQUEST",
                "message": "Malformed JSON request body",
                "details": None,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
    field = ".".join(str(l) for l in loc if l not in ("body", "query", "path"))
    message = get_validation_message(field, error_type)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "VALIDATION_ERROR",
            "message": message,
            "details": {"field": field, "type": error_type} if field else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


#  Schemas


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Optional[dict] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    handle: str = Field(..., min_length=1, max_length=200)


class CacheInfo(BaseModel):
    """Cache metadata for debugging - shows whether the result came from Redis."""
    hit: bool
    source: str
    key: str
    latency_ms: float
    ttl_seconds: int
    message: str


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    handle: str
    result: AlignmentResult
    cached: bool
    is_error: bool = Field(alias="isError")
    error_kind: Optional[ErrorKind] = Field(default=None, alias="errorKind")
    cache: Optional[CacheInfo] = None


#  Exception Helpers


def raise_error(status_code: int, error_code: str, message: str):
    raise HTTPException(
        status_code=status_code,
        detail=ErrorResponse(error_code=error_code, message=message).model_dump(mode="json"),
    )


def create_cache_info(hit: bool, key: str, latency_ms: float, ttl: int) -> CacheInfo:
    """Create CacheInfo object with human-readable message."""
    if hit:
        return CacheInfo(
            hit=True,
            source="redis",
            key=key,
            latency_ms=round(latency_ms, 3),
            ttl_seconds=ttl,
            message=f"Cache HIT - result served from Redis in {latency_ms:.3f}ms",
        )
    return CacheInfo(
        hit=False,
        source="pipeline",
        key=key,
        latency_ms=round(latency_ms, 3),
        ttl_seconds=ttl,
        message=f"Cache MISS - result computed in {latency_ms:.3f}ms",
    )


#  Routes


@router.post(
    "/analysis",
    response_model=AnalysisResponse,
    response_model_by_alias=True,
    summary="Analyze a handle's alignment",
    description="Cache-aside: returns the cached result when present, otherwise fetches posts, scores them and caches the result.",
)
async def analyze_handle(
    request: AnalysisRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    handle = request.handle.strip()
    if not handle:
        raise_error(status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", "Handle cannot be empty")

    start = time.perf_counter()
    outcome = await orchestrator.analyze(handle)
    latency_ms = (time.perf_counter() - start) * 1000

    cache = None
    if outcome.cache_key:
        cache = create_cache_info(outcome.cached, outcome.cache_key, latency_ms, orchestrator.ttl_seconds)

    return AnalysisResponse(
        handle=handle,
        result=outcome.result,
        cached=outcome.cached,
        is_error=outcome.is_error,
        error_kind=outcome.error_kind,
        cache=cache,
    )
