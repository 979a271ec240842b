"""
Showtime model: one screening of a movie on a screen.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Showtime(Base):
    """A scheduled screening occupying ``[start_time, end_time)`` on a screen."""
    
    __tablename__ = "showtimes"
    
    movie_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("movies.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    
    screen_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("screens.id", ondelete="RESTRICT"),
        nullable=False
    )
    
    # end_time is derived from the movie duration when written, never recomputed
    start_time: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    
    ticket_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    
    __table_args__ = (
        Index("ix_showtimes_screen_window", "screen_id", "start_time", "end_time"),
        CheckConstraint("ticket_price > 0", name="ck_showtimes_ticket_price_positive"),
        CheckConstraint("end_time > start_time", name="ck_showtimes_window_ordered"),
    )
    
    def overlaps(self, start_time: datetime, end_time: datetime) -> bool:
        """Half-open interval overlap against ``[start_time, end_time)``."""
        return self.start_time < end_time and start_time < self.end_time
    
    def has_started(self, now: datetime) -> bool:
        return self.start_time <= now
    
    def __repr__(self) -> str:
        return (
            f"<Showtime(id={self.id}, screen_id={self.screen_id}, "
            f"window={self.start_time}..{self.end_time})>"
        )
