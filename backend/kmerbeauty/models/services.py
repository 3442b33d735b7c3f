"""
Service model - catalog entries clients can book.
"""
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Numeric, Integer, Boolean, ARRAY
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from kmerbeauty.lib.db import Base


class Service(Base):
    """
    Service entity - bookable services, named in French and English.
    """
    __tablename__ = "services"
    
    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    
    # Service details
    name_fr: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    name_en: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    description_fr: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    description_en: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    images: Mapped[Optional[List[str]]] = mapped_column(ARRAY(String), nullable=True)
    
    # Pricing and duration
    base_price: Mapped[Optional[float]] = mapped_column(Numeric(12, 2), nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name_fr={self.name_fr})>"
