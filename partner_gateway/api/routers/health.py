"""Health check API router."""

from datetime import datetime, timezone
from fastapi import APIRouter, Request

from partner_gateway.api.models import ErrorResponse, HealthResponse, ReadyResponse
from partner_gateway.api.utils import error_response, get_correlation_id
from partner_gateway.infra.cache import CacheUnavailableError, ping_cache
from partner_gateway.infra.error_handler import ErrorCode
from partner_gateway.infra.metrics import get_metrics_response

router = APIRouter()


@router.get("/healthz", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Liveness probe - indicates if the process is running."""
    return {
        "ok": True,
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "demoMode": request.app.state.config.DEMO_MODE,
    }


@router.get(
    "/healthz/ready",
    response_model=ReadyResponse,
    responses={503: {"model": ErrorResponse}},
    tags=["Health"],
)
async def readiness_probe(request: Request):
    """Readiness probe - pings the cache/store when one is configured."""
    try:
        await ping_cache(request.app.state.config.REDIS_URL)
    except CacheUnavailableError:
        return error_response(
            ErrorCode.NOT_READY,
            "Cache/store is configured but unreachable",
            get_correlation_id(request),
        )
    return {"ok": True, "ready": True}


@router.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()
