from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.courses import router as courses_router
from app.api.dashboard import router as dashboard_router
from app.api.health import router as health_router
from app.api.instructor import router as instructor_router
from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.services.cache import TTLCache
from app.services.presentation import error_state
from app.services.progress_service import UpstreamUnavailableError

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        yield


app = FastAPI(
    title="course-progress-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Process-wide result caches, shared by all requests.
app.state.course_report_cache = TTLCache(
    ttl_seconds=SETTINGS.progress_cache_ttl_seconds,
    max_entries=SETTINGS.progress_cache_max_entries,
    name="course_report",
)
app.state.learner_progress_cache = TTLCache(
    ttl_seconds=SETTINGS.dashboard_cache_ttl_seconds,
    max_entries=SETTINGS.dashboard_cache_max_entries,
    name="learner_progress",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(
    _request: Request, exc: UpstreamUnavailableError
) -> JSONResponse:
    """Store outage: a retryable error state instead of a partial report."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_state(str(exc), retryable=True),
        headers={"Retry-After": "5"},
    )


app.include_router(health_router)
app.include_router(instructor_router)
app.include_router(dashboard_router)
app.include_router(courses_router)

logger.info(
    "course-progress-service started  env=%s log_level=%s port=%d docs=%s "
    "report_cache_ttl=%ds dashboard_cache_ttl=%ds",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    SETTINGS.progress_cache_ttl_seconds,
    SETTINGS.dashboard_cache_ttl_seconds,
)
