"""Health, readiness and metrics endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200; the status field reports
    whether the progress store is reachable.

  /ready (readiness):
    "Can this instance serve reports right now?"  503 while a configured
    database cannot be reached, so the load balancer routes around the
    instance instead of it answering every dashboard with a retryable
    error.  Without DATABASE_URL the in-memory store is always ready.

  /metrics:
    Prometheus text exposition (HTTP, cache, aggregation and orphan
    metrics).  Restrict it to the scraper in production.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.db import engine as db_engine

router = APIRouter(tags=["health"])


async def _database_check() -> str:
    if db_engine.engine is None:
        return "not_configured"
    return "ok" if await db_engine.ping_database() else "degraded"


@router.get("/health")
async def health(request: Request) -> dict:
    """Liveness probe + dependency status + cache occupancy.

    Returns 200 even when degraded.  A 200 with status=degraded means
    "alive but impaired"; a 503 here would get the container restarted.
    """
    database = await _database_check()
    caches = {
        name: len(getattr(request.app.state, name))
        for name in ("course_report_cache", "learner_progress_cache")
        if hasattr(request.app.state, name)
    }
    return {
        "status": "degraded" if database == "degraded" else "ok",
        "checks": {"database": database},
        "caches": caches,
    }


@router.get("/ready")
async def ready() -> Response:
    """Readiness probe: 503 while a configured database is unreachable."""
    if await _database_check() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)


@router.get("/metrics", include_in_schema=False, tags=["observability"])
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
