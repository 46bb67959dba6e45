"""API routes package."""

from api.routes.jobs import router as jobs_router
from api.routes.results import router as results_router

__all__ = ["jobs_router", "results_router"]
