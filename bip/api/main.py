"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from bip import __version__
from bip.api.errors import register_error_handlers
from bip.api.middleware import create_metrics_middleware
from bip.api.routes import health_router, jobs_router
from bip.config import get_settings
from bip.constants import SPAN_RECOVER
from bip.observability.logging import setup_logging
from bip.observability.metrics import setup_metrics
from bip.observability.tracing import get_tracer, instrument_fastapi, setup_tracing
from bip.store import Registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Sets up observability, then recovers the registry from the data root
    unless one was handed to create_app.
    """
    setup_logging()
    setup_metrics()
    setup_tracing()

    if app.state.registry is None:
        settings = get_settings()
        with get_tracer().start_as_current_span(SPAN_RECOVER) as span:
            span.set_attribute("data_root", str(settings.data_root))
            app.state.registry = await run_in_threadpool(
                Registry.recover,
                settings.data_root,
                fsync=settings.fsync_writes,
                requeue_in_flight=settings.requeue_in_flight,
            )

    registry: Registry = app.state.registry
    logger.info(
        "Application started",
        extra={"data_root": str(registry.root), "job_count": len(registry)},
    )

    yield

    logger.info("Application shutdown")


def create_app(registry: Registry | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        registry: An already recovered registry. When omitted, the registry
            is recovered from the configured data root at start-up.

    Returns:
        FastAPI: The configured application instance.
    """
    app = FastAPI(
        title="bip",
        description="Minimal durable job queue",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.registry = registry

    app.add_middleware(
        BaseHTTPMiddleware,
        dispatch=create_metrics_middleware(),
    )

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(jobs_router)

    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    app = create_app()

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
