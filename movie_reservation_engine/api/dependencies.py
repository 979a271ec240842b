"""
FastAPI dependencies: caller identity and service construction.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import get_session_factory
from ..services.reservation_service import ReservationService
from ..services.seat_availability_service import SeatAvailabilityService
from ..services.showtime_service import ShowtimeService


async def get_session_factory_dependency() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID")
) -> UUID:
    """
    Identify the caller from the ``X-User-ID`` header.

    Authentication happens upstream; the gateway forwards the authenticated
    user's id.

    Raises:
        HTTPException: If the header is missing or not a UUID
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing or invalid X-User-ID header",
    )
    if not x_user_id:
        raise credentials_exception
    try:
        return UUID(x_user_id)
    except ValueError:
        raise credentials_exception


def get_showtime_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dependency)
) -> ShowtimeService:
    return ShowtimeService(session_factory)


def get_seat_availability_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dependency)
) -> SeatAvailabilityService:
    return SeatAvailabilityService(session_factory)


def get_reservation_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dependency)
) -> ReservationService:
    return ReservationService(session_factory)
