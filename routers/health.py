"""
Health + Metrics Router

GET  /api/health            — database check (+ AI key check with ?check_ai=true)
HEAD /api/health            — quick database probe for load balancers
GET  /api/metrics           — uptime, question stats, cache and rate limiter stats
"""

import logging
import platform
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from database import crud
from database.crud import StoreError
from database.database import get_db
from database.schemas import QuestionStats
from generation.gpt_client import get_generation_client
from services.cache import ResultCache, cache_keys, cached, get_cache
from services.rate_limit import RateLimiter, get_rate_limiter

API_VERSION = "1.0.0"
STARTED_AT = time.monotonic()

router = APIRouter(prefix="/api", tags=["health"])

log = logging.getLogger(__name__)

_NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uptime() -> float:
    return round(time.monotonic() - STARTED_AT, 3)


@cached(lambda db: cache_keys.stats())
def _load_stats(db: Session) -> dict:
    return crud.get_question_stats(db)


@router.get("/health")
async def health_check(
    response: Response,
    check_ai: bool = Query(False, description="Also verify the AI service key (slow)"),
    db: Session = Depends(get_db),
):
    started = time.perf_counter()
    status = {
        "status": "healthy",
        "timestamp": _now_iso(),
        "uptime": _uptime(),
        "version": API_VERSION,
        "services": {"database": "healthy", "ai": "healthy"},
    }

    try:
        status["metrics"] = {"total_questions": crud.get_question_count(db)}
    except StoreError as e:
        log.error(f"[HEALTH] database check failed: {e}")
        status["services"]["database"] = "unhealthy"
        status["status"] = "unhealthy"

    if check_ai:
        try:
            ai_ok = await get_generation_client().validate_api_key()
        except RuntimeError as e:
            log.error(f"[HEALTH] AI client unavailable: {e}")
            ai_ok = False
        if not ai_ok:
            status["services"]["ai"] = "unhealthy"
            status["status"] = "unhealthy"

    response.status_code = 200 if status["status"] == "healthy" else 503
    response.headers.update(_NO_CACHE)
    response.headers["X-Response-Time"] = f"{(time.perf_counter() - started) * 1000:.0f}ms"
    return status


@router.head("/health")
def health_probe(db: Session = Depends(get_db)):
    try:
        crud.get_question_count(db)
    except StoreError:
        return Response(status_code=503)
    return Response(status_code=200)


@router.get("/metrics")
def metrics(
    response: Response,
    db: Session = Depends(get_db),
    cache: ResultCache = Depends(get_cache),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    response.headers.update(_NO_CACHE)
    try:
        stats = QuestionStats(**_load_stats(db))
    except StoreError as e:
        log.error(f"[METRICS] collection failed: {e}")
        response.status_code = 500
        return {"error": "Failed to collect metrics", "timestamp": _now_iso()}

    return {
        "timestamp": _now_iso(),
        "uptime": _uptime(),
        "questions": stats.model_dump(),
        "cache": cache.stats(),
        "rate_limits": limiter.stats(),
        "system": {
            "python_version": platform.python_version(),
            "platform": platform.system().lower(),
            "arch": platform.machine(),
        },
    }
