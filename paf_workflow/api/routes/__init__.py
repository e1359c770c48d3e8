"""API Routes module"""
from fastapi import APIRouter

from .templates import router as templates_router
from .submissions import router as submissions_router

# Main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(templates_router, prefix="/templates", tags=["Templates"])
api_router.include_router(submissions_router, prefix="/submissions", tags=["Submissions"])

__all__ = ["api_router"]
