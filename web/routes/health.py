"""Health check and metrics endpoints."""
import time

from fastapi import APIRouter, Depends, Request

from battle.engine import BattleEngine
from battle.exceptions import StoreError
from battle.observability import get_correlation_id, get_logger, metrics, Timer
from web.deps import START_TIME, get_engine, limiter
from web.schemas import HealthResponse, MetricsResponse

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(request: Request, engine: BattleEngine = Depends(get_engine)):
    """Health check endpoint for load balancer monitoring."""
    store_status = {"status": "connected", **engine.store.get_stats()}
    try:
        with Timer("health_check_store") as timer:
            await engine.store.ping()
        store_status["latency_ms"] = round(timer.elapsed_ms, 2)
    except StoreError as e:
        logger.warning(f"Health check store ping failed: {e}")
        store_status["status"] = f"error: {e}"

    return {
        "status": "healthy" if store_status["status"] == "connected" else "degraded",
        "version": engine.config.version,
        "uptime_seconds": int(time.time() - START_TIME),
        "correlation_id": get_correlation_id(),
        "store": store_status,
        "shopify_circuit": engine.shopify.circuit_breaker.snapshot(),
    }


@router.get("/metrics", response_model=MetricsResponse)
@limiter.limit("60/minute")
async def get_metrics_endpoint(request: Request):
    """Get application metrics."""
    return {
        "uptime_seconds": int(time.time() - START_TIME),
        "correlation_id": get_correlation_id(),
        **metrics.get_stats(),
    }
