"""
Operations repository - support tickets, credit sales and provider ranking.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, text

from kmerbeauty.lib.errors import translate_db_errors
from kmerbeauty.models.operations import CreditPurchase, SupportConversation
from kmerbeauty.repositories.base import BaseRepository


TOP_PROVIDER_SQL = text("SELECT * FROM get_top_provider()")

COMPLETED_PAYMENT = "completed"
OPEN_TICKET = "OPEN"


class OperationsRepository(BaseRepository):
    """Repository for back-office figures"""
    
    def count_open_tickets(self) -> int:
        stmt = select(func.count(SupportConversation.id)).where(
            SupportConversation.status == OPEN_TICKET
        )
        with translate_db_errors("open_tickets"):
            return int(self.db.execute(stmt).scalar() or 0)
    
    def completed_credit_revenue(self) -> Decimal:
        """Sum of price_paid over completed credit purchases"""
        stmt = select(func.coalesce(func.sum(CreditPurchase.price_paid), 0)).where(
            CreditPurchase.payment_status == COMPLETED_PAYMENT
        )
        with translate_db_errors("credit_revenue"):
            return Decimal(self.db.execute(stmt).scalar() or 0)
    
    def completed_purchases_since(self, since: datetime) -> List[Tuple[datetime, Decimal]]:
        """(created_at, price_paid) of completed purchases made at or after `since`"""
        stmt = (
            select(CreditPurchase.created_at, CreditPurchase.price_paid)
            .where(
                CreditPurchase.payment_status == COMPLETED_PAYMENT,
                CreditPurchase.created_at >= since,
            )
            .order_by(CreditPurchase.created_at)
        )
        with translate_db_errors("credit_purchases_since"):
            return [(row[0], Decimal(row[1] or 0)) for row in self.db.execute(stmt).all()]
    
    def top_provider(self) -> Optional[Dict[str, Any]]:
        """First row of get_top_provider(), None when it returns nothing"""
        with translate_db_errors("get_top_provider"):
            row = self.db.execute(TOP_PROVIDER_SQL).mappings().first()
        return dict(row) if row is not None else None
