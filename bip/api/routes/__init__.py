"""
API routes module.
"""

from bip.api.routes.health import router as health_router
from bip.api.routes.jobs import router as jobs_router

__all__ = ["jobs_router", "health_router"]
