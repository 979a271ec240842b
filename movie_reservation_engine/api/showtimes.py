"""
FastAPI routes for showtime scheduling.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..schemas.common import ErrorResponse
from ..schemas.showtime import (
    ShowtimeCreateRequest,
    ShowtimeListResponse,
    ShowtimeResponse,
    ShowtimeUpdateRequest,
)
from ..services.showtime_service import ShowtimeService
from .dependencies import get_current_user_id, get_showtime_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["showtimes"], dependencies=[Depends(get_current_user_id)])


@router.post(
    "/showtimes",
    response_model=ShowtimeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def schedule_showtime(
    request: ShowtimeCreateRequest,
    service: ShowtimeService = Depends(get_showtime_service),
):
    """
    Schedule a movie on a screen.

    The end time is derived from the movie's running time. Windows that overlap
    another showtime on the same screen are rejected with 409.
    """
    showtime = await service.schedule_showtime(
        movie_id=request.movie_id,
        screen_id=request.screen_id,
        start_time=request.start_time,
        ticket_price=request.ticket_price,
    )
    return ShowtimeResponse.model_validate(showtime)


@router.get("/showtimes/{showtime_id}", response_model=ShowtimeResponse, responses={404: {"model": ErrorResponse}})
async def get_showtime(
    showtime_id: UUID,
    service: ShowtimeService = Depends(get_showtime_service),
):
    showtime = await service.get_showtime(showtime_id)
    return ShowtimeResponse.model_validate(showtime)


@router.put(
    "/showtimes/{showtime_id}",
    response_model=ShowtimeResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_showtime(
    showtime_id: UUID,
    request: ShowtimeUpdateRequest,
    service: ShowtimeService = Depends(get_showtime_service),
):
    """Update a showtime; the same overlap rules as scheduling apply."""
    showtime = await service.update_showtime(
        showtime_id,
        movie_id=request.movie_id,
        screen_id=request.screen_id,
        start_time=request.start_time,
        ticket_price=request.ticket_price,
    )
    return ShowtimeResponse.model_validate(showtime)


@router.delete(
    "/showtimes/{showtime_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_showtime(
    showtime_id: UUID,
    service: ShowtimeService = Depends(get_showtime_service),
):
    await service.delete_showtime(showtime_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/screens/{screen_id}/showtimes", response_model=ShowtimeListResponse)
async def list_screen_showtimes(
    screen_id: UUID,
    starting_after: Optional[datetime] = Query(None, description="Only showtimes starting at or after"),
    starting_before: Optional[datetime] = Query(None, description="Only showtimes starting before"),
    service: ShowtimeService = Depends(get_showtime_service),
):
    showtimes = await service.list_screen_showtimes(screen_id, starting_after, starting_before)
    return ShowtimeListResponse(
        showtimes=[ShowtimeResponse.model_validate(showtime) for showtime in showtimes],
        total=len(showtimes),
    )
