"""
Database models for the movie reservation engine.
"""

from .base import Base
from .user import User
from .theater import Theater, Screen
from .seat import Seat
from .movie import Movie
from .showtime import Showtime
from .reservation import Reservation, ReservationStatus
from .seat_reservation import SeatReservation, SeatReservationStatus, ACTIVE_SEAT_STATUSES, SEAT_CLAIM_INDEX
from .reservation_history import ReservationHistory, ReservationAction

__all__ = [
    "Base",
    "User",
    "Theater",
    "Screen",
    "Seat",
    "Movie",
    "Showtime",
    "Reservation",
    "ReservationStatus",
    "SeatReservation",
    "SeatReservationStatus",
    "ACTIVE_SEAT_STATUSES",
    "SEAT_CLAIM_INDEX",
    "ReservationHistory",
    "ReservationAction",
]
