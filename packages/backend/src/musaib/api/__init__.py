"""API route aggregation.

Learn: the portal pages live in musaib.portal; this router only carries
the machine-facing endpoints, mounted under /api/v1. Health is open.
"""

from fastapi import APIRouter

from musaib.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
