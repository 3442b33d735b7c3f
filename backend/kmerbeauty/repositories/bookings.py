"""
Booking repository - client history and dashboard figures.
"""
from datetime import datetime
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy import func, select

from kmerbeauty.lib.errors import translate_db_errors
from kmerbeauty.models.bookings import Booking, BookingStatus
from kmerbeauty.repositories.base import BaseRepository


class BookingRepository(BaseRepository):
    """Repository for booking database operations"""
    
    def list_for_user(self, user_id: UUID) -> List[Booking]:
        """
        All bookings of a client, newest appointment first.
        
        Salon, therapist (with its user) and items are loaded eagerly.
        """
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.scheduled_at.desc())
        )
        with translate_db_errors("user_bookings"):
            return list(self.db.execute(stmt).unique().scalars().all())
    
    def completed_total(self) -> Decimal:
        """Sum of `total` over completed bookings (gross merchandise value)"""
        stmt = select(func.coalesce(func.sum(Booking.total), 0)).where(
            Booking.status == BookingStatus.COMPLETED.value
        )
        with translate_db_errors("bookings_gmv"):
            return Decimal(self.db.execute(stmt).scalar() or 0)
    
    def count_created_since(self, since: datetime) -> int:
        stmt = select(func.count(Booking.id)).where(Booking.created_at >= since)
        with translate_db_errors("bookings_recent_count"):
            return int(self.db.execute(stmt).scalar() or 0)
    
    def latest(self, limit: int = 5) -> List[Booking]:
        """Most recently created bookings with their provider loaded"""
        stmt = select(Booking).order_by(Booking.created_at.desc()).limit(limit)
        with translate_db_errors("bookings_latest"):
            return list(self.db.execute(stmt).unique().scalars().all())
