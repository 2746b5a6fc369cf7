"""API routes for MediaProbe"""

from fastapi import APIRouter

from .health import router as health_router
from .probe import router as probe_router

# Create the main API router
api_router = APIRouter(prefix="/api")

api_router.include_router(health_router)
api_router.include_router(probe_router)

__all__ = ["api_router"]
