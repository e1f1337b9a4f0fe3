"""
Health Check Module
===================
Health endpoints reporting OTP store connectivity and janitor liveness.
"""

import time
from typing import Optional, Dict
from fastapi import APIRouter, Response
from pydantic import BaseModel
from enum import Enum
import structlog

from .otp.janitor import OTPJanitor
from .otp.store import OTPStore

logger = structlog.get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


async def check_store(store: OTPStore) -> ComponentHealth:
    """Check OTP store connectivity and latency."""
    try:
        start = time.time()
        ok = await store.ping()
        latency = (time.time() - start) * 1000
        if not ok:
            return ComponentHealth(status="error", error="ping failed")
        return ComponentHealth(status="connected", latency_ms=round(latency, 2))
    except Exception as e:
        logger.error("OTP store health check failed", store=store.name, error=str(e))
        return ComponentHealth(status="error", error=str(e))


def check_janitor(janitor: OTPJanitor) -> ComponentHealth:
    return ComponentHealth(status="running" if janitor.running else "stopped")


def create_health_router(
    service_name: str,
    store: OTPStore,
    version: str = "1.0.0",
    janitor: Optional[OTPJanitor] = None,
) -> APIRouter:
    """
    Create a health check router.

    Args:
        service_name: Name of the service (e.g., "auth-service")
        store: OTP store backing the service
        version: Service version
        janitor: Sweep task to report on (optional)

    Returns:
        FastAPI router with /health, /health/live and /health/ready
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check with component statuses."""
        components: Dict[str, ComponentHealth] = {}
        overall_status = HealthStatus.HEALTHY

        store_health = await check_store(store)
        components[f"store:{store.name}"] = store_health
        if store_health.status == "error":
            overall_status = HealthStatus.UNHEALTHY

        if janitor is not None:
            janitor_health = check_janitor(janitor)
            components["janitor"] = janitor_health
            if janitor_health.status != "running" and overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        return HealthResponse(
            status=overall_status,
            service=service_name,
            version=version,
            components=components,
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def liveness_probe():
        """Liveness probe - always 200 while the process runs."""
        return {"status": "alive"}

    @router.get("/health/ready")
    async def readiness_probe():
        """Readiness probe - 503 when the store is unreachable."""
        store_health = await check_store(store)
        if store_health.status == "error":
            return Response(
                content='{"status": "not_ready", "reason": "store_unavailable"}',
                status_code=503,
                media_type="application/json",
            )
        return {"status": "ready"}

    return router
