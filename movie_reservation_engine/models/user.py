"""
User model referenced by reservations.

Accounts are owned by the identity service; the engine only stores the rows it
needs to satisfy foreign keys and to look users up by id.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class User(Base):
    """User reference record."""
    
    __tablename__ = "users"
    
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
