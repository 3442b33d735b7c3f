"""
Client bookings API routes.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from kmerbeauty.api.dependencies import get_booking_aggregator, get_current_user_id
from kmerbeauty.lib.cancellation import CancellationToken
from kmerbeauty.lib.request_context import get_cancellation_token
from kmerbeauty.services.booking_aggregator import BookingAggregator, BookingListResult, BookingTab


router = APIRouter(prefix="/me/bookings", tags=["bookings"])


@router.get("", response_model=BookingListResult)
def list_my_bookings(
    tab: BookingTab = Query(BookingTab.ALL, description="upcoming, past or all"),
    user_id: UUID = Depends(get_current_user_id),
    aggregator: BookingAggregator = Depends(get_booking_aggregator),
    token: CancellationToken = Depends(get_cancellation_token),
) -> BookingListResult:
    """
    The caller's bookings, split into upcoming and past.
    
    Each item carries the images of the service it names; therapists
    without a business name are shown under their own name.
    """
    return aggregator.list_for_user(user_id, tab=tab, token=token)
