"""
FastAPI routes for the reservation lifecycle.
"""

import logging
from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..models.reservation import ReservationStatus
from ..schemas.common import ErrorResponse
from ..schemas.reservation import (
    ReservationCancelRequest,
    ReservationCreateRequest,
    ReservationHistoryResponse,
    ReservationListResponse,
    ReservationResponse,
    SeatReservationResponse,
)
from ..services.reservation_service import ReservationDetails, ReservationService
from .dependencies import get_current_user_id, get_reservation_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["reservations"])


def _reservation_response(details: ReservationDetails) -> ReservationResponse:
    """Create a ReservationResponse from a reservation snapshot."""
    reservation = details.reservation
    return ReservationResponse(
        id=reservation.id,
        user_id=reservation.user_id,
        showtime_id=reservation.showtime_id,
        total_amount=reservation.total_amount,
        status=reservation.status,
        hold_expiry=reservation.hold_expiry,
        version=reservation.version,
        created_at=reservation.created_at,
        updated_at=reservation.updated_at,
        seat_reservations=[
            SeatReservationResponse.model_validate(seat_reservation)
            for seat_reservation in details.seat_reservations
        ],
    )


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_reservation(
    request: ReservationCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Hold seats for a showtime.

    Either every requested seat is held or none is; a seat already held or
    confirmed by someone else yields 409 naming the seat.
    """
    details = await service.create_reservation(
        user_id=user_id,
        showtime_id=request.showtime_id,
        seat_ids=request.seat_ids,
        hold_duration=timedelta(minutes=request.hold_minutes) if request.hold_minutes else None,
    )
    return _reservation_response(details)


@router.get("/reservations", response_model=ReservationListResponse)
async def list_my_reservations(
    status_filter: Optional[List[ReservationStatus]] = Query(None, alias="status"),
    user_id: UUID = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    reservations = await service.list_user_reservations(user_id, status_filter)
    return ReservationListResponse(
        reservations=[_reservation_response(details) for details in reservations],
        total=len(reservations),
    )


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse, responses={404: {"model": ErrorResponse}})
async def get_reservation(
    reservation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    details = await service.get_reservation(reservation_id, user_id)
    return _reservation_response(details)


@router.get(
    "/reservations/{reservation_id}/history",
    response_model=List[ReservationHistoryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_reservation_history(
    reservation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    history = await service.get_reservation_history(reservation_id, user_id)
    return [ReservationHistoryResponse.model_validate(entry) for entry in history]


@router.post(
    "/reservations/{reservation_id}/confirm",
    response_model=ReservationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def confirm_reservation(
    reservation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    details = await service.confirm_reservation(reservation_id, user_id)
    return _reservation_response(details)


@router.post(
    "/reservations/{reservation_id}/cancel",
    response_model=ReservationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_reservation(
    reservation_id: UUID,
    request: Optional[ReservationCancelRequest] = None,
    user_id: UUID = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    details = await service.cancel_reservation(
        reservation_id,
        user_id,
        reason=request.reason if request else None,
    )
    return _reservation_response(details)


@router.post(
    "/reservations/{reservation_id}/complete",
    response_model=ReservationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def complete_reservation(
    reservation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    details = await service.complete_reservation(reservation_id, user_id)
    return _reservation_response(details)


@router.get(
    "/showtimes/{showtime_id}/reservations",
    response_model=ReservationListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_showtime_reservations(
    showtime_id: UUID,
    status_filter: Optional[List[ReservationStatus]] = Query(None, alias="status"),
    _: UUID = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    reservations = await service.list_showtime_reservations(showtime_id, status_filter)
    return ReservationListResponse(
        reservations=[_reservation_response(details) for details in reservations],
        total=len(reservations),
    )
