"""
Theater and Screen catalog models.
"""

import uuid
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Theater(Base):
    """A cinema location owning one or more screens."""
    
    __tablename__ = "theaters"
    
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    
    def __repr__(self) -> str:
        return f"<Theater(id={self.id}, name='{self.name}')>"


class Screen(Base):
    """An auditorium inside a theater."""
    
    __tablename__ = "screens"
    
    theater_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("theaters.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_screens_capacity_positive"),
    )
    
    def __repr__(self) -> str:
        return (
            f"<Screen(id={self.id}, theater_id={self.theater_id}, "
            f"capacity={self.capacity})>"
        )
