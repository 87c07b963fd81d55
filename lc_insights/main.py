"""
FastAPI application entry point.
Wires the API routes, the daily snapshot scheduler, per-IP rate limiting and
request logging.
"""

import asyncio
import os
import time
import logging
import traceback
from collections import deque
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, Tuple

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api_routes import router
from .cache import response_cache
from .config import (
    API_PREFIX,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    RATE_LIMIT_PER_MINUTE,
    SNAPSHOT_CRON,
    SNAPSHOT_JOB_ENABLED,
)
from .database import SessionLocal, init_db
from .errors import APIError, ErrorCode, RateLimitError, ValidationError
from .leetcode_client import get_leetcode_client
from .snapshot_job import start_snapshot_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"
RATE_WINDOW_SECONDS = 60


# =============================================================================
# RATE LIMITING
# =============================================================================

class RateLimiter:
    """Sliding one-minute window of request times per client IP."""

    def __init__(self, requests_per_minute: int = RATE_LIMIT_PER_MINUTE, time_source: Callable[[], float] = time.time):
        self.requests_per_minute = requests_per_minute
        self.requests: Dict[str, Deque[float]] = {}
        self._now = time_source

    def is_allowed(self, ip: str) -> Tuple[bool, int]:
        """
        Record a request from `ip` if it fits in the window.

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        now = self._now()
        window = self.requests.setdefault(ip, deque())
        while window and window[0] <= now - RATE_WINDOW_SECONDS:
            window.popleft()

        if len(window) >= self.requests_per_minute:
            return False, int(window[0] + RATE_WINDOW_SECONDS - now) + 1

        window.append(now)
        return True, 0


rate_limiter = RateLimiter()


def _is_production() -> bool:
    return bool(os.getenv("RENDER") or os.getenv("RAILWAY_ENVIRONMENT"))


def _error_json(error: APIError, headers: Dict[str, str] = None) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_response().to_dict(), headers=headers)


# =============================================================================
# STARTUP/SHUTDOWN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, start the snapshot scheduler; stop it on shutdown."""
    try:
        init_db()
    except Exception as e:
        logger.error(f"Database initialization failed (storage routes will return 503): {e}")

    scheduler = None
    if SNAPSHOT_JOB_ENABLED:
        scheduler = asyncio.create_task(
            start_snapshot_scheduler(SessionLocal, get_leetcode_client(), SNAPSHOT_CRON)
        )
    else:
        logger.info("Daily snapshot job disabled")

    yield

    if scheduler is not None:
        scheduler.cancel()
        with suppress(asyncio.CancelledError):
            await scheduler

    response_cache.clear()
    logger.info("Application shutdown complete.")


# =============================================================================
# APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title="LeetCode Insights",
    description="Interview-readiness analytics, progress snapshots and opportunity-cost topic recommendations",
    version=VERSION,
    lifespan=lifespan
)

if _is_production():
    logger.info("Production environment detected")
    logger.info("Database URL configured: " + ("YES" if os.getenv("DATABASE_URL") else "NO"))
else:
    logger.info("Running in local/development mode")


@app.middleware("http")
async def rate_limit_and_timing(request: Request, call_next: Callable) -> Response:
    """Reject over-limit clients (health checks exempt), then log timing."""
    started = time.perf_counter()
    client_ip = request.client.host if request.client else "unknown"

    if not request.url.path.startswith("/health"):
        allowed, retry_after = rate_limiter.is_allowed(client_ip)
        if not allowed:
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            return _error_json(RateLimitError(retry_after), headers={"Retry-After": str(retry_after)})

    response = await call_next(request)

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"{request.method} {request.url.path} status={response.status_code} "
        f"duration={elapsed_ms:.1f}ms ip={client_ip}"
    )
    response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"
    return response


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"API Error: {exc.code.value} - {exc.message}" + (f" ({exc.detail})" if exc.detail else ""))
    return _error_json(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters share the VALIDATION_ERROR envelope."""
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.info(f"Request validation failed: {request.url.path} ({detail})")
    return _error_json(ValidationError("Invalid request", detail=detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything unexpected becomes INTERNAL_ERROR; tracebacks only outside production."""
    trace = traceback.format_exc()
    logger.error(f"Unhandled exception: {exc}\n{trace}")

    hide = _is_production()
    return JSONResponse(
        status_code=500,
        content={
            "error": True,
            "code": ErrorCode.INTERNAL_ERROR.value,
            "message": "Internal server error" if hide else str(exc),
            "detail": "An internal error occurred" if hide else trace,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(router, prefix=API_PREFIX)


# =============================================================================
# ROOT ENDPOINTS
# =============================================================================

@app.get("/")
def root():
    """API summary."""
    return {
        "message": "LeetCode Insights API",
        "version": VERSION,
        "docs": "/docs",
        "endpoints": {
            "health": "GET /health",
            "dashboard": f"GET {API_PREFIX}/leetcode/dashboard/{{username}}",
            "snapshot": f"POST {API_PREFIX}/leetcode/snapshot/{{username}}",
            "history": f"GET {API_PREFIX}/leetcode/history/{{username}}?days={{days}}",
            "insights": f"GET {API_PREFIX}/leetcode/insights/{{username}}?days={{days}}",
            "leaderboard": f"GET {API_PREFIX}/leaderboard?limit={{limit}}",
            "leaderboard_stats": f"GET {API_PREFIX}/leaderboard/stats",
            "leaderboard_rank": f"GET {API_PREFIX}/leaderboard/rank/{{username}}",
            "engine_readiness": f"POST {API_PREFIX}/engine/readiness",
        },
    }


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": response_cache.stats(),
    }
