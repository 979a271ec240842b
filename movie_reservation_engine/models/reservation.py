"""
Reservation model for managing seat holds and bookings.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ReservationStatus(str, enum.Enum):
    """Lifecycle states of a reservation."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class Reservation(Base):
    """A user's claim on one or more seats for a showtime."""
    
    __tablename__ = "reservations"
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    showtime_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("showtimes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status"),
        default=ReservationStatus.PENDING,
        nullable=False
    )
    
    # Only PENDING reservations carry a hold expiry
    hold_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(), nullable=True)
    
    # Bumped on every state transition; transitions compare-and-set on it
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    
    __table_args__ = (
        Index("ix_reservations_status_hold_expiry", "status", "hold_expiry"),
        CheckConstraint("total_amount > 0", name="ck_reservations_total_amount_positive"),
        CheckConstraint("version > 0", name="ck_reservations_version_positive"),
    )
    
    @property
    def is_active(self) -> bool:
        """Check if the reservation still holds its seats."""
        return self.status in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)
    
    def is_hold_expired(self, now: datetime) -> bool:
        if self.status != ReservationStatus.PENDING or self.hold_expiry is None:
            return False
        return self.hold_expiry < now
    
    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, user_id={self.user_id}, "
            f"showtime_id={self.showtime_id}, status={self.status.value})>"
        )
