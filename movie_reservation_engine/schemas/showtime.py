"""
Pydantic schemas for showtime scheduling.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ShowtimeCreateRequest(BaseModel):
    """Schema for scheduling a showtime."""
    
    movie_id: UUID = Field(..., description="Movie to screen")
    screen_id: UUID = Field(..., description="Screen to schedule on")
    start_time: datetime = Field(..., description="Start time (UTC if no offset is given)")
    ticket_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Price per seat")


class ShowtimeUpdateRequest(BaseModel):
    """Schema for updating a showtime. Omitted fields are left unchanged."""
    
    movie_id: Optional[UUID] = None
    screen_id: Optional[UUID] = None
    start_time: Optional[datetime] = None
    ticket_price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)


class ShowtimeResponse(BaseModel):
    """Schema for showtime responses."""
    
    id: UUID
    movie_id: UUID
    screen_id: UUID
    start_time: datetime
    end_time: datetime
    ticket_price: Decimal
    created_at: datetime
    updated_at: datetime
    
    model_config = {"from_attributes": True}


class ShowtimeListResponse(BaseModel):
    showtimes: List[ShowtimeResponse]
    total: int
