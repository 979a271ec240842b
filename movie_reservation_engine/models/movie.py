"""
Movie catalog model.
"""

from typing import Optional

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Movie(Base):
    """A film that can be scheduled on a screen."""
    
    __tablename__ = "movies"
    
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    genre: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    __table_args__ = (
        CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes > 0",
            name="ck_movies_duration_positive"
        ),
    )
    
    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title='{self.title}')>"
