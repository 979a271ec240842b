"""Business logic services for the movie reservation engine."""

from .inventory_service import SqlInventoryReference
from .showtime_service import ShowtimeService
from .seat_availability_service import SeatAvailabilityService
from .reservation_service import ReservationService, ReservationDetails

__all__ = [
    "SqlInventoryReference",
    "ShowtimeService",
    "SeatAvailabilityService",
    "ReservationService",
    "ReservationDetails",
]
