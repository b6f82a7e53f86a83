"""Main API router aggregation."""

from fastapi import APIRouter

from .admin import router as admin_router
from .health import router as health_router
from .usage import router as usage_router

router = APIRouter()

# Include sub-routers
router.include_router(health_router)
router.include_router(usage_router)
router.include_router(admin_router)
