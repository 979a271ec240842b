"""API endpoints for the movie reservation engine."""

from fastapi import APIRouter
from .showtimes import router as showtimes_router
from .seats import router as seats_router
from .reservations import router as reservations_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(showtimes_router)
api_router.include_router(seats_router)
api_router.include_router(reservations_router)

__all__ = ["api_router"]
