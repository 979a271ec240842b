"""
ReservationHistory model for tracking the reservation audit trail.
"""

import enum
import uuid
from typing import Optional

from sqlalchemy import Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ReservationAction(str, enum.Enum):
    """Enumeration for reservation state transitions."""
    CREATED = "CREATED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    COMPLETED = "COMPLETED"


class ReservationHistory(Base):
    """ReservationHistory model for tracking the reservation audit trail."""
    
    __tablename__ = "reservation_history"
    
    reservation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    action: Mapped[ReservationAction] = mapped_column(
        Enum(ReservationAction, name="reservation_action"),
        nullable=False,
        index=True
    )
    
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # "user:<id>" for caller-initiated transitions, "system" for sweeps
    performed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    def __repr__(self) -> str:
        """String representation of the reservation history entry."""
        return (
            f"<ReservationHistory(id={self.id}, reservation_id={self.reservation_id}, "
            f"action={self.action.value}, created_at={self.created_at})>"
        )
