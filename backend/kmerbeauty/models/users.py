"""
User model - every account of the marketplace (clients, providers, admins).
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4
import enum

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from kmerbeauty.lib.db import Base


class UserRole(str, enum.Enum):
    """User role enumeration (stored upper-case)."""
    CLIENT = "CLIENT"
    PROVIDER = "PROVIDER"
    ADMIN = "ADMIN"


class User(Base):
    """
    User entity - profile row attached to an auth account.
    """
    __tablename__ = "users"
    
    # Primary key (same id as the auth account)
    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    
    # Profile
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    role: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=UserRole.CLIENT.value,
        index=True,
    )
    
    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    @property
    def full_name(self) -> str:
        """First and last name joined, blanks dropped."""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"
