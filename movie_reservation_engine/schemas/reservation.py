"""
Pydantic schemas for reservation-related API requests and responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..models.reservation import ReservationStatus
from ..models.reservation_history import ReservationAction
from ..models.seat_reservation import SeatReservationStatus


class ReservationCreateRequest(BaseModel):
    """Schema for holding seats for a showtime."""
    
    showtime_id: UUID = Field(..., description="Showtime to reserve seats for")
    seat_ids: List[UUID] = Field(..., min_length=1, description="Seats to hold")
    hold_minutes: Optional[int] = Field(None, ge=1, le=120, description="Overrides the default hold duration")
    
    @field_validator('seat_ids')
    @classmethod
    def validate_unique_seats(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("Seat IDs must be unique")
        return v


class ReservationCancelRequest(BaseModel):
    """Schema for cancelling a reservation."""
    
    reason: Optional[str] = Field(None, max_length=500, description="Optional cancellation reason")


class SeatReservationResponse(BaseModel):
    """Schema for seat reservation information in responses."""
    
    id: UUID
    seat_id: UUID
    showtime_id: UUID
    status: SeatReservationStatus
    
    model_config = {"from_attributes": True}


class ReservationResponse(BaseModel):
    """Schema for reservation responses."""
    
    id: UUID
    user_id: UUID
    showtime_id: UUID
    total_amount: Decimal
    status: ReservationStatus
    hold_expiry: Optional[datetime]
    version: int
    created_at: datetime
    updated_at: datetime
    seat_reservations: List[SeatReservationResponse] = []


class ReservationListResponse(BaseModel):
    reservations: List[ReservationResponse]
    total: int


class ReservationHistoryResponse(BaseModel):
    """Schema for one audit trail entry."""
    
    id: UUID
    reservation_id: UUID
    action: ReservationAction
    details: Optional[str]
    performed_by: Optional[str]
    created_at: datetime
    
    model_config = {"from_attributes": True}
