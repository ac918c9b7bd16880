"""
Health check routes.
"""

import os
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import Response

from bip import __version__
from bip.api.dependencies import RegistryDep
from bip.observability.metrics import get_metrics
from bip.store import Registry
from bip.types.api import HealthResponse

router = APIRouter(tags=["Health"])


def _storage_status(registry: Registry) -> str:
    """Check that the registry root is a writable directory."""
    root = registry.root
    if root.is_dir() and os.access(root, os.W_OK | os.X_OK):
        return "healthy"
    return "unhealthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and its storage root.",
)
async def health_check(registry: RegistryDep) -> HealthResponse:
    """
    Perform a health check.

    Returns:
        HealthResponse with service status.
    """
    storage_status = _storage_status(registry)

    return HealthResponse(
        status="healthy" if storage_status == "healthy" else "degraded",
        version=__version__,
        storage=storage_status,
        jobs=len(registry),
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(registry: RegistryDep) -> dict:
    return {"ready": _storage_status(registry) == "healthy"}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics(registry: RegistryDep) -> Response:
    """
    Expose Prometheus metrics.

    The per-status job gauge is refreshed from the registry on each scrape.

    Returns:
        Prometheus-formatted metrics.
    """
    metrics_collector = get_metrics()
    metrics_collector.update_job_counts(registry.get_job_stats())
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
