"""Liveness and readiness endpoints."""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

router = APIRouter()

HEALTH_VERSION = "1.0.0"
SERVICE_STARTED_AT = datetime.now(timezone.utc)


def _iso_utc(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _uptime_seconds(now: datetime) -> int:
    return max(0, int((now - SERVICE_STARTED_AT).total_seconds()))


class HealthResponse(BaseModel):
    """GET /health response."""

    model_config = ConfigDict(extra="forbid")
    status: Annotated[str, Field(description="'ok' or 'ready'")]
    version: Annotated[str, Field(description="Semver MAJOR.MINOR.PATCH")]
    timestamp: Annotated[str, Field(description="ISO8601 UTC")]
    started_at: Annotated[str, Field(description="ISO8601 UTC when service process started")]
    uptime_seconds: Annotated[int, Field(description="Seconds service has been up")]
    cached_results: Annotated[int, Field(description="Entries held by the result cache")]


def _response(request: Request, status: str) -> HealthResponse:
    now = datetime.now(timezone.utc)
    cache = getattr(request.app.state, "result_cache", None)
    return HealthResponse(
        status=status,
        version=HEALTH_VERSION,
        timestamp=_iso_utc(now),
        started_at=_iso_utc(SERVICE_STARTED_AT),
        uptime_seconds=_uptime_seconds(now),
        cached_results=len(cache) if cache is not None and hasattr(cache, "__len__") else 0,
    )


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Return API health status."""
    return _response(request, "ok")


@router.get("/ready", response_model=HealthResponse)
async def ready(request: Request):
    """Readiness probe. Returns 200 once the round service is wired."""
    if getattr(request.app.state, "round_service", None) is None:
        raise HTTPException(status_code=503, detail="not ready")
    return _response(request, "ready")
