"""
Request middleware: log context and API metrics.
"""

import logging
import time
from typing import Callable

from fastapi import Request

from bip.observability.logging import bind_context, clear_context
from bip.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


def create_metrics_middleware() -> Callable:
    """
    Create the request metrics middleware.

    Returns:
        The middleware function.
    """

    async def metrics_middleware(request: Request, call_next: Callable):
        """Time the request and record it against its route template."""
        clear_context()
        bind_context(method=request.method, path=request.url.path)
        start = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        get_metrics().record_api_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            duration_seconds=duration,
        )
        logger.debug(
            "Request handled",
            extra={"status": response.status_code, "duration_ms": round(duration * 1000, 2)},
        )
        return response

    return metrics_middleware
