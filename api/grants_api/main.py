from __future__ import annotations

import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from grants_api.adapters.result_store import InMemoryResultStore, SqlResultStore
from grants_api.errors import (
    EmptyDistributionError,
    GrantsApiError,
    PrecisionError,
    UnsupportedStrategyError,
    UpstreamFetchError,
    ValidationError,
)
from grants_api.models.hotfix import HotfixConfig
from grants_api.routers import health, matches, payouts, summaries
from grants_api.services.indexer_client import IndexerClient
from grants_api.services.pricing_client import PricingClient
from grants_api.services.result_cache import InMemoryResultCache
from grants_api.services.round_service import RoundService

app = FastAPI(title="Grants Round QF API", version="1.0.0")
logger = logging.getLogger("grants.api")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
logger.propagate = False
logger.setLevel(logging.INFO)

_ERROR_STATUS: dict[type[GrantsApiError], int] = {
    ValidationError: 400,
    UnsupportedStrategyError: 400,
    EmptyDistributionError: 409,
    PrecisionError: 422,
    UpstreamFetchError: 502,
}


def _slow_request_ms_threshold() -> float:
    raw = os.getenv("API_SLOW_REQUEST_MS", "1500").strip()
    try:
        return max(25.0, float(raw))
    except ValueError:
        return 1500.0


def _correlation_id(request: Request) -> str:
    for key in ("x-request-id", "x-amzn-trace-id", "cf-ray"):
        value = request.headers.get(key)
        if value:
            return value
    return "none"


def build_round_service() -> RoundService:
    database_url = os.getenv("DATABASE_URL")
    store = SqlResultStore(database_url) if database_url else InMemoryResultStore()
    return RoundService(
        indexer=IndexerClient(),
        pricing=PricingClient(),
        hotfix_config=HotfixConfig.from_env(),
        cache=app.state.result_cache,
        store=store,
    )


# Configure CORS
allowed_origins_str = os.getenv("ALLOWED_ORIGINS", "*")
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.result_cache = InMemoryResultCache()
app.state.round_service = build_round_service()


@app.exception_handler(GrantsApiError)
async def _grants_api_error(request: Request, exc: GrantsApiError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _ERROR_STATUS.items() if isinstance(exc, error_type)),
        500,
    )
    logger.warning(
        "request_failed path=%s error=%s status=%s detail=%s",
        request.url.path,
        exc.__class__.__name__,
        status_code,
        exc,
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.get("/", include_in_schema=False)
async def root():
    """Redirect to API documentation."""
    return RedirectResponse(url="/docs")


app.include_router(summaries.router, prefix="/api/v1", tags=["summaries"])
app.include_router(matches.router, prefix="/api/v1", tags=["matches"])
app.include_router(payouts.router, prefix="/api/v1", tags=["payouts"])
app.include_router(health.router, prefix="/api/v1", tags=["health"])


@app.middleware("http")
async def log_slow_requests(request: Request, call_next):
    start = time.perf_counter()
    status_code = 500
    exc_name: str | None = None
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as exc:
        exc_name = exc.__class__.__name__
        raise
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if elapsed_ms >= _slow_request_ms_threshold() or status_code >= 500:
            logger.warning(
                "slow_api_request method=%s path=%s status=%s elapsed_ms=%.2f correlation=%s exception=%s",
                request.method,
                request.url.path,
                status_code,
                elapsed_ms,
                _correlation_id(request),
                exc_name or "none",
            )
