"""
Pydantic schemas for seat availability.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from ..services.seat_availability_service import SeatState


class SeatResponse(BaseModel):
    """A seat of a screen."""
    
    seat_id: UUID
    label: str
    row_label: Optional[str] = None
    column: Optional[int] = None
    
    model_config = {"from_attributes": True}


class AvailableSeatsResponse(BaseModel):
    showtime_id: UUID
    screen_id: UUID
    seats: List[SeatResponse]
    available_count: int


class SeatMapEntryResponse(SeatResponse):
    status: SeatState


class SeatMapResponse(BaseModel):
    """Every seat of the showtime's screen with its status."""
    
    showtime_id: UUID
    seats: List[SeatMapEntryResponse]
    available_count: int
    held_count: int
    confirmed_count: int


class SeatStatusResponse(BaseModel):
    seat_id: UUID
    showtime_id: UUID
    status: SeatState
    is_available: bool
