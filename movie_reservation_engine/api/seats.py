"""
FastAPI routes for per-showtime seat availability.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from ..schemas.common import ErrorResponse
from ..schemas.seat import (
    AvailableSeatsResponse,
    SeatMapEntryResponse,
    SeatMapResponse,
    SeatResponse,
    SeatStatusResponse,
)
from ..services.seat_availability_service import SeatAvailabilityService, SeatState
from ..services.showtime_service import ShowtimeService
from .dependencies import get_current_user_id, get_seat_availability_service, get_showtime_service

router = APIRouter(prefix="/showtimes", tags=["seats"], dependencies=[Depends(get_current_user_id)])


@router.get("/{showtime_id}/seats", response_model=AvailableSeatsResponse, responses={404: {"model": ErrorResponse}})
async def available_seats(
    showtime_id: UUID,
    showtime_service: ShowtimeService = Depends(get_showtime_service),
    availability: SeatAvailabilityService = Depends(get_seat_availability_service),
):
    """Seats free for the showtime, ordered by row and column."""
    showtime = await showtime_service.get_showtime(showtime_id)
    seats = await availability.available_seats(showtime.screen_id, showtime_id)
    return AvailableSeatsResponse(
        showtime_id=showtime_id,
        screen_id=showtime.screen_id,
        seats=[SeatResponse.model_validate(seat) for seat in seats],
        available_count=len(seats),
    )


@router.get("/{showtime_id}/seat-map", response_model=SeatMapResponse, responses={404: {"model": ErrorResponse}})
async def seat_map(
    showtime_id: UUID,
    availability: SeatAvailabilityService = Depends(get_seat_availability_service),
):
    entries = await availability.seat_map(showtime_id)
    counts = {state: 0 for state in SeatState}
    for entry in entries:
        counts[entry.status] += 1

    return SeatMapResponse(
        showtime_id=showtime_id,
        seats=[
            SeatMapEntryResponse(
                seat_id=entry.seat.seat_id,
                label=entry.seat.label,
                row_label=entry.seat.row_label,
                column=entry.seat.column,
                status=entry.status,
            )
            for entry in entries
        ],
        available_count=counts[SeatState.AVAILABLE],
        held_count=counts[SeatState.HELD],
        confirmed_count=counts[SeatState.CONFIRMED],
    )


@router.get(
    "/{showtime_id}/seats/{seat_id}",
    response_model=SeatStatusResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def seat_status(
    showtime_id: UUID,
    seat_id: UUID,
    availability: SeatAvailabilityService = Depends(get_seat_availability_service),
):
    state = await availability.seat_status(seat_id, showtime_id)
    return SeatStatusResponse(
        seat_id=seat_id,
        showtime_id=showtime_id,
        status=state,
        is_available=state == SeatState.AVAILABLE,
    )
