"""Health check endpoint."""
import time

from fastapi import APIRouter, Request

from bookkeeping.config import VERSION
from bookkeeping.observability import get_correlation_id, Timer
from web.schemas import HealthResponse, StoreStatus
from ._deps import limiter, get_store, get_logger, START_TIME

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint for Docker/load balancer monitoring."""
    uptime_seconds = int(time.time() - START_TIME)

    try:
        with Timer("health_check_db") as timer:
            store = await get_store()
            await store.fetchone("SELECT 1")
        store_status = StoreStatus(status="connected", latency_ms=round(timer.elapsed_ms, 2))
    except Exception as e:
        logger.warning(f"Health check store probe failed: {e}")
        store_status = StoreStatus(status=f"error: {e}")

    return HealthResponse(
        status="healthy" if store_status.status == "connected" else "degraded",
        version=VERSION,
        uptime_seconds=uptime_seconds,
        correlation_id=get_correlation_id(),
        store=store_status,
    )
