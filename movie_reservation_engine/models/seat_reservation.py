"""
SeatReservation model: the unit of seat exclusivity for a showtime.
"""

import enum
import uuid

from sqlalchemy import Enum, ForeignKey, Index, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class SeatReservationStatus(str, enum.Enum):
    """Seat-level states, mirrored from the parent reservation."""
    HELD = "HELD"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Statuses that make a seat unavailable for new holds
ACTIVE_SEAT_STATUSES = (SeatReservationStatus.HELD, SeatReservationStatus.CONFIRMED)

_NOT_CANCELLED = text("status <> 'CANCELLED'")

SEAT_CLAIM_INDEX = "uq_seat_reservations_seat_showtime_active"


class SeatReservation(Base):
    """One seat of one reservation for one showtime."""
    
    __tablename__ = "seat_reservations"
    
    reservation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    seat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("seats.id", ondelete="CASCADE"),
        nullable=False
    )
    
    showtime_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("showtimes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    status: Mapped[SeatReservationStatus] = mapped_column(
        Enum(SeatReservationStatus, name="seat_reservation_status"),
        default=SeatReservationStatus.HELD,
        nullable=False
    )
    
    __table_args__ = (
        # At most one non-cancelled row per (seat, showtime)
        Index(
            SEAT_CLAIM_INDEX,
            "seat_id",
            "showtime_id",
            unique=True,
            postgresql_where=_NOT_CANCELLED,
            sqlite_where=_NOT_CANCELLED,
        ),
    )
    
    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SEAT_STATUSES
    
    def __repr__(self) -> str:
        return (
            f"<SeatReservation(id={self.id}, seat_id={self.seat_id}, "
            f"showtime_id={self.showtime_id}, status={self.status.value})>"
        )
