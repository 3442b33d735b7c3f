"""
Provider models - salons (institutes) and independent therapists.
"""
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Boolean, Float, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kmerbeauty.lib.db import Base
from kmerbeauty.models.users import User


class Salon(Base):
    """
    Salon entity - a fixed-address institute.
    """
    __tablename__ = "salons"
    
    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    # Localized display names
    name_fr: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name_en: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    # Address parts
    address: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    quarter: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    
    def __repr__(self) -> str:
        return f"<Salon(id={self.id}, name_fr={self.name_fr}, city={self.city})>"


class Therapist(Base):
    """
    Therapist entity - independent provider, usually travelling to the client.
    """
    __tablename__ = "therapists"
    
    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    # Optional trade name; the user's own name is shown when absent
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_mobile: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    
    user: Mapped[Optional[User]] = relationship(User, lazy="joined")
    
    def __repr__(self) -> str:
        return f"<Therapist(id={self.id}, business_name={self.business_name})>"
