"""
Seat model describing the physical seat layout of a screen.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Seat(Base):
    """A seat on a screen. Availability is per showtime, never stored here."""
    
    __tablename__ = "seats"
    
    screen_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("screens.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    # Seat location information
    label: Mapped[str] = mapped_column(String(16), nullable=False)
    row_label: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    column: Mapped[Optional[int]] = mapped_column("col", Integer, nullable=True)
    
    __table_args__ = (
        UniqueConstraint("screen_id", "label", name="uq_seats_screen_label"),
    )
    
    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, screen_id={self.screen_id}, label='{self.label}')>"
