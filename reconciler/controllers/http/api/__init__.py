"""
HTTP API Endpoints

REST API endpoints for orphan cleanup, member deletes and profile sweeps.
"""

from fastapi import APIRouter

from reconciler.controllers.http.api.cleanup import router as cleanup_router
from reconciler.controllers.http.api.members import router as members_router

__all__ = ["router"]

# Combined router
router = APIRouter()
router.include_router(cleanup_router)
router.include_router(members_router)
