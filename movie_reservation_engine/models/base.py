"""
Base model class for SQLAlchemy models.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..utils.clock import utcnow


class Base(DeclarativeBase):
    """Base class for all database models."""
    
    # Generate UUID primary keys by default
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), 
        primary_key=True, 
        default=uuid.uuid4,
        index=True
    )
    
    # Automatic timestamps (naive UTC), set client-side so they are loaded after flush
    created_at: Mapped[datetime] = mapped_column(
        DateTime(), 
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(), 
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        """String representation of the model."""
        return f"<{self.__class__.__name__}(id={self.id})>"
