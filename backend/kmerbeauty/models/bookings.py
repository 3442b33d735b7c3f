"""
Booking models - appointments between a client and a salon or therapist.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import String, Numeric, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kmerbeauty.lib.db import Base
from kmerbeauty.models.providers import Salon, Therapist


class BookingStatus(str, enum.Enum):
    """
    Known booking statuses. The column is free text so statuses added by
    the backend later still load.
    """
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DECLINED = "DECLINED"


class Booking(Base):
    """
    Booking entity - exactly one of salon_id / therapist_id is set.
    """
    __tablename__ = "bookings"
    
    # Primary key
    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    
    # Relationships
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    salon_id: Mapped[Optional[UUID]] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("salons.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    therapist_id: Mapped[Optional[UUID]] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("therapists.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    
    # Status
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True,
    )
    
    # Timing
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    
    # Money (XAF)
    subtotal: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)
    travel_fee: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)
    tip: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)
    total: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    
    salon: Mapped[Optional[Salon]] = relationship(Salon, lazy="joined")
    therapist: Mapped[Optional[Therapist]] = relationship(Therapist, lazy="joined")
    items: Mapped[List["BookingItem"]] = relationship(
        "BookingItem",
        lazy="selectin",
        order_by="BookingItem.id",
    )
    
    __table_args__ = (
        CheckConstraint(
            "salon_id IS NULL OR therapist_id IS NULL",
            name="booking_single_provider",
        ),
    )
    
    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, status={self.status}, user_id={self.user_id})>"


class BookingItem(Base):
    """
    Line of a booking. Only the service name is stored, not the service id.
    """
    __tablename__ = "booking_items"
    
    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    price: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    def __repr__(self) -> str:
        return f"<BookingItem(id={self.id}, service_name={self.service_name})>"
