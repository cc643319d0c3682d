"""
API routes module.
"""

from jobdispatch.api.routes.control import router as control_router
from jobdispatch.api.routes.health import router as health_router
from jobdispatch.api.routes.jobs import router as jobs_router

__all__ = ["jobs_router", "control_router", "health_router"]
