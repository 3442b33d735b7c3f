"""
Booking List Aggregator.

Loads a client's bookings with their nested provider and items, then
adds what the booking rows do not carry: service images (booking items
only store the service *name*, so images are found by exact match on
the French or English name) and a display name for therapists without
a business name. The result is split into upcoming and past bookings.
"""
import enum
from contextlib import nullcontext
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from pydantic import BaseModel

from kmerbeauty.lib.cancellation import CancellationToken
from kmerbeauty.lib.errors import DataAccessError
from kmerbeauty.lib.logging import get_logger
from kmerbeauty.lib.metrics import get_metrics_collector
from kmerbeauty.models.bookings import Booking, BookingStatus
from kmerbeauty.models.services import Service
from kmerbeauty.models.users import User
from kmerbeauty.repositories.bookings import BookingRepository
from kmerbeauty.repositories.catalog import ServiceRepository
from kmerbeauty.repositories.users import UserRepository


logger = get_logger(__name__)


class BookingTab(str, enum.Enum):
    UPCOMING = "upcoming"
    PAST = "past"
    ALL = "all"


class BookingItemView(BaseModel):
    id: UUID
    service_name: Optional[str] = None
    price: Optional[Decimal] = None
    duration: Optional[int] = None
    images: List[str] = []


class SalonView(BaseModel):
    id: UUID
    name_fr: Optional[str] = None
    name_en: Optional[str] = None
    city: Optional[str] = None


class TherapistView(BaseModel):
    id: UUID
    user_id: UUID
    business_name: Optional[str] = None
    city: Optional[str] = None


class BookingView(BaseModel):
    id: UUID
    status: str
    scheduled_at: datetime
    created_at: Optional[datetime] = None
    subtotal: Optional[Decimal] = None
    travel_fee: Optional[Decimal] = None
    tip: Optional[Decimal] = None
    total: Optional[Decimal] = None
    salon: Optional[SalonView] = None
    therapist: Optional[TherapistView] = None
    provider_name: Optional[str] = None
    image: Optional[str] = None
    items: List[BookingItemView] = []


class BookingListResult(BaseModel):
    tab: BookingTab
    upcoming: List[BookingView] = []
    past: List[BookingView] = []
    error: Optional[str] = None


def _aware(moment: datetime) -> datetime:
    """Naive timestamps are UTC."""
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def collect_enrichment_keys(bookings: Iterable[Booking]) -> Tuple[Set[str], Set[UUID]]:
    """
    Distinct item service names, and user ids of therapists whose
    business name is empty.
    """
    names: Set[str] = set()
    therapist_users: Set[UUID] = set()
    for booking in bookings:
        for item in booking.items or []:
            if item.service_name:
                names.add(item.service_name)
        therapist = booking.therapist
        if therapist is not None and not therapist.business_name and therapist.user_id:
            therapist_users.add(therapist.user_id)
    return names, therapist_users


def build_image_index(services: Iterable[Service]) -> Dict[str, List[str]]:
    """Map both localized names of each service to its images."""
    index: Dict[str, List[str]] = {}
    for service in services:
        images = list(service.images or [])
        for name in (service.name_fr, service.name_en):
            if name:
                index[name] = images
    return index


def build_name_index(users: Iterable[User]) -> Dict[UUID, str]:
    return {user.id: user.full_name for user in users}


def enrich_booking(
    booking: Booking,
    images_by_name: Dict[str, List[str]],
    names_by_user: Dict[UUID, str],
) -> BookingView:
    """Merge lookups into one booking; misses leave images empty and names unchanged."""
    items = [
        BookingItemView(
            id=item.id,
            service_name=item.service_name,
            price=item.price,
            duration=item.duration,
            images=list(images_by_name.get(item.service_name or "", [])),
        )
        for item in booking.items or []
    ]
    
    salon_view = None
    therapist_view = None
    provider_name = None
    if booking.salon is not None:
        salon = booking.salon
        salon_view = SalonView(id=salon.id, name_fr=salon.name_fr, name_en=salon.name_en, city=salon.city)
        provider_name = salon.name_fr or salon.name_en
    if booking.therapist is not None:
        therapist = booking.therapist
        business_name = therapist.business_name or names_by_user.get(therapist.user_id) or None
        therapist_view = TherapistView(
            id=therapist.id,
            user_id=therapist.user_id,
            business_name=business_name,
            city=therapist.city,
        )
        provider_name = provider_name or business_name
    
    image = next((item.images[0] for item in items if item.images), None)
    return BookingView(
        id=booking.id,
        status=booking.status,
        scheduled_at=booking.scheduled_at,
        created_at=booking.created_at,
        subtotal=booking.subtotal,
        travel_fee=booking.travel_fee,
        tip=booking.tip,
        total=booking.total,
        salon=salon_view,
        therapist=therapist_view,
        provider_name=provider_name,
        image=image,
        items=items,
    )


def is_upcoming(booking: BookingView, now: datetime) -> bool:
    return _aware(booking.scheduled_at) > now or booking.status == BookingStatus.PENDING.value


def is_past(booking: BookingView, now: datetime) -> bool:
    return _aware(booking.scheduled_at) < now and booking.status != BookingStatus.PENDING.value


def partition_bookings(
    bookings: Iterable[BookingView],
    now: datetime,
) -> Tuple[List[BookingView], List[BookingView]]:
    """
    Split into (upcoming, past), keeping input order.
    
    A non-pending booking scheduled exactly at `now` is in neither list.
    """
    now = _aware(now)
    upcoming = []
    past = []
    for booking in bookings:
        if is_upcoming(booking, now):
            upcoming.append(booking)
        elif is_past(booking, now):
            past.append(booking)
    return upcoming, past


class BookingAggregator:
    """Builds the "my bookings" view of one client."""
    
    def __init__(
        self,
        bookings: BookingRepository,
        services: ServiceRepository,
        users: UserRepository,
        savepoint: Optional[Callable[[], ContextManager[Any]]] = None,
    ):
        self.bookings = bookings
        self.services = services
        self.users = users
        # Each enrichment lookup runs in its own savepoint
        self.savepoint = savepoint or nullcontext
        self.metrics = get_metrics_collector()
    
    def _image_index(self, names: Set[str]) -> Dict[str, List[str]]:
        if not names:
            return {}
        try:
            with self.savepoint():
                return build_image_index(self.services.services_by_names(names))
        except DataAccessError as exc:
            logger.warning("Service images unavailable", extra={"kind": exc.kind.value})
            return {}
    
    def _name_index(self, user_ids: Set[UUID]) -> Dict[UUID, str]:
        if not user_ids:
            return {}
        try:
            with self.savepoint():
                return build_name_index(self.users.users_by_ids(user_ids))
        except DataAccessError as exc:
            logger.warning("Therapist names unavailable", extra={"kind": exc.kind.value})
            return {}
    
    def list_for_user(
        self,
        user_id: UUID,
        tab: BookingTab = BookingTab.ALL,
        now: Optional[datetime] = None,
        token: Optional[CancellationToken] = None,
    ) -> BookingListResult:
        """
        Bookings of `user_id` split into upcoming and past.
        
        Args:
            user_id: Client whose bookings are listed
            tab: upcoming, past or all (both lists)
            now: Reference time, defaults to the current UTC time
            token: Cancellation token of the request
            
        Returns:
            BookingListResult; empty lists with `error` set when the
            bookings themselves could not be loaded
        """
        token = token or CancellationToken.none()
        now = now or datetime.now(timezone.utc)
        
        try:
            rows = self.bookings.list_for_user(user_id)
        except DataAccessError as exc:
            logger.error("Bookings unavailable", extra={"user_id": str(user_id), "kind": exc.kind.value})
            return BookingListResult(tab=tab, error=exc.kind.value)
        token.raise_if_cancelled("user_bookings")
        
        names, therapist_users = collect_enrichment_keys(rows)
        images_by_name = self._image_index(names)
        token.raise_if_cancelled("user_bookings")
        names_by_user = self._name_index(therapist_users)
        token.raise_if_cancelled("user_bookings")
        
        missing_images = len(names - set(images_by_name))
        if missing_images:
            self.metrics.increment_enrichment_misses("image", missing_images)
        missing_names = len(therapist_users - set(names_by_user))
        if missing_names:
            self.metrics.increment_enrichment_misses("therapist_name", missing_names)
        
        views = [enrich_booking(row, images_by_name, names_by_user) for row in rows]
        upcoming, past = partition_bookings(views, now)
        
        if tab == BookingTab.UPCOMING:
            past = []
        elif tab == BookingTab.PAST:
            upcoming = []
        return BookingListResult(tab=tab, upcoming=upcoming, past=past)
