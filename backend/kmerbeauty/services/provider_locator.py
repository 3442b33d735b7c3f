"""
Provider Locator.

Finds salons and independent therapists offering a service near the
client. Matching itself is done by the get_nearby_providers database
function; this module resolves the search location, merges the
function's rows with salon/therapist address details, re-sorts by
district match and applies the salon/individual tab.
"""
import enum
from contextlib import nullcontext
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from kmerbeauty.lib.cancellation import CancellationToken
from kmerbeauty.lib.errors import DataAccessError
from kmerbeauty.lib.logging import get_logger
from kmerbeauty.lib.metrics import get_metrics_collector
from kmerbeauty.lib.settings import settings
from kmerbeauty.models.providers import Salon, Therapist
from kmerbeauty.models.services import Service
from kmerbeauty.repositories.catalog import ProviderRepository, ServiceRepository
from kmerbeauty.services.preferences_service import PreferenceStore, SavedLocation


logger = get_logger(__name__)

PLACEHOLDER_IMAGE_URL = (
    "https://images.unsplash.com/photo-1560066984-138dadb4c035"
    "?auto=format&fit=crop&q=80&w=800"
)
MOBILE_ADDRESS_LABEL = "À domicile / Mobile"
MISSING_RATING_LABEL = "N/A"
MISSING_DISTANCE_KM = 9999.0
DEFAULT_DURATION_MINUTES = 60


class MatchType(str, enum.Enum):
    DISTRICT = "district_match"
    CITY = "city_match"
    FALLBACK = "proximity_or_fallback"


class ProviderTab(str, enum.Enum):
    ALL = "all"
    SALON = "salon"
    INDIVIDUAL = "individual"


@dataclass(frozen=True)
class SearchLocation:
    """Effective search point handed to the matching function."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    district: Optional[str] = None


class ServiceSummary(BaseModel):
    id: UUID
    name_fr: Optional[str] = None
    name_en: Optional[str] = None
    description_fr: Optional[str] = None
    description_en: Optional[str] = None
    images: List[str]
    image: str
    base_price: Optional[Decimal] = None
    duration: Optional[int] = None


class ProviderMatch(BaseModel):
    id: str
    type: str
    name: Optional[str] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    rating_label: str
    review_count: Optional[int] = None
    image: str
    price: Optional[Decimal] = None
    duration: int = DEFAULT_DURATION_MINUTES
    distance_km: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    match_type: Optional[str] = None
    is_mobile: Optional[bool] = None


class ProviderSearchResult(BaseModel):
    service: ServiceSummary
    tab: ProviderTab
    city: Optional[str] = None
    district: Optional[str] = None
    providers: List[ProviderMatch]
    total: int
    is_empty: bool
    error: Optional[str] = None


def service_summary(service: Service) -> ServiceSummary:
    images = [image for image in (service.images or []) if image]
    if not images:
        images = [PLACEHOLDER_IMAGE_URL]
    return ServiceSummary(
        id=service.id,
        name_fr=service.name_fr,
        name_en=service.name_en,
        description_fr=service.description_fr,
        description_en=service.description_en,
        images=images,
        image=images[0],
        base_price=service.base_price,
        duration=service.duration,
    )


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_location_string(location: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Split "district, city" on its first comma.
    
    Returns:
        (district, city); a string without comma is a city only
    """
    if not location:
        return None, None
    if "," in location:
        district, city = location.split(",", 1)
        return _clean(district), _clean(city)
    return None, _clean(location)


def resolve_location(
    latitude: Optional[float],
    longitude: Optional[float],
    location: Optional[str],
    saved: Optional[SavedLocation] = None,
) -> SearchLocation:
    """
    Pick the search point: request values first, saved location second.
    
    Coordinates of 0 count as absent. The saved coordinates are used only
    when the request carries neither latitude nor longitude, and the saved
    query only when the request has no location string either.
    """
    latitude = latitude or None
    longitude = longitude or None
    district, city = parse_location_string(location)
    
    if latitude is None and longitude is None and saved is not None:
        if saved.coords is not None:
            latitude = saved.coords.lat or None
            longitude = saved.coords.lon or None
        if not _clean(location) and saved.query:
            district, city = parse_location_string(saved.query)
    
    return SearchLocation(latitude=latitude, longitude=longitude, city=city, district=district)


def format_address(
    row: Mapping[str, Any],
    salon: Optional[Salon] = None,
    therapist: Optional[Therapist] = None,
) -> Optional[str]:
    """
    Display address of one matched provider.
    
    Salons: "quarter, city", else the raw address. Therapists: the mobile
    label, or their own city when they do not travel. Anything missing
    falls back to the city returned by the matching function.
    """
    fallback = row.get("city")
    if row.get("type") == "salon":
        if salon is None:
            return fallback
        if salon.quarter:
            return f"{salon.quarter}, {salon.city}" if salon.city else salon.quarter
        return salon.address or fallback
    
    if therapist is None:
        return fallback
    if row.get("is_mobile"):
        return MOBILE_ADDRESS_LABEL
    return therapist.city or fallback


def _distance_km(distance_meters: Any) -> Optional[float]:
    if distance_meters is None:
        return None
    return float(distance_meters) / 1000


def to_provider_match(
    row: Mapping[str, Any],
    salon: Optional[Salon] = None,
    therapist: Optional[Therapist] = None,
) -> ProviderMatch:
    rating = row.get("rating")
    return ProviderMatch(
        id=str(row["id"]),
        type="individual" if row.get("type") == "therapist" else "salon",
        name=row.get("name"),
        address=format_address(row, salon, therapist),
        rating=rating,
        rating_label=MISSING_RATING_LABEL if rating is None else f"{float(rating):.1f}",
        review_count=row.get("review_count"),
        image=row.get("image") or PLACEHOLDER_IMAGE_URL,
        price=row.get("service_price"),
        distance_km=_distance_km(row.get("distance_meters")),
        latitude=row.get("latitude"),
        longitude=row.get("longitude"),
        match_type=row.get("match_type"),
        is_mobile=row.get("is_mobile"),
    )


def merge_provider_details(
    rows: Iterable[Mapping[str, Any]],
    salons: Mapping[str, Salon],
    therapists: Mapping[str, Therapist],
) -> List[ProviderMatch]:
    """Join function rows with detail rows keyed by str(id), keeping row order."""
    merged = []
    for row in rows:
        key = str(row["id"])
        if row.get("type") == "salon":
            merged.append(to_provider_match(row, salon=salons.get(key)))
        else:
            merged.append(to_provider_match(row, therapist=therapists.get(key)))
    return merged


def sort_by_match_tier(providers: List[ProviderMatch]) -> List[ProviderMatch]:
    """District matches first, then nearest; unknown distance sorts last."""
    def sort_key(provider: ProviderMatch):
        distance = provider.distance_km if provider.distance_km is not None else MISSING_DISTANCE_KM
        return (provider.match_type != MatchType.DISTRICT.value, distance)
    
    return sorted(providers, key=sort_key)


def filter_by_tab(providers: List[ProviderMatch], tab: ProviderTab) -> List[ProviderMatch]:
    if tab == ProviderTab.ALL:
        return list(providers)
    return [provider for provider in providers if provider.type == tab.value]


class ProviderLocator:
    """Runs one provider search for a service."""
    
    def __init__(
        self,
        services: ServiceRepository,
        providers: ProviderRepository,
        preferences: Optional[PreferenceStore] = None,
        radius_meters: Optional[int] = None,
        savepoint: Optional[Callable[[], ContextManager[Any]]] = None,
    ):
        self.services = services
        self.providers = providers
        self.preferences = preferences
        self.radius_meters = radius_meters or settings.nearby_radius_meters
        # Each lookup allowed to fail runs in its own savepoint
        self.savepoint = savepoint or nullcontext
        self.metrics = get_metrics_collector()
    
    def _saved_location(self, user_id: Optional[UUID]) -> Optional[SavedLocation]:
        if user_id is None or self.preferences is None:
            return None
        try:
            with self.savepoint():
                return self.preferences.get_location(user_id)
        except DataAccessError as exc:
            logger.warning(
                "Saved location unavailable, searching without it",
                extra={"user_id": str(user_id), "kind": exc.kind.value},
            )
            return None
    
    def _salon_details(self, ids: List[Any]) -> Dict[str, Salon]:
        try:
            with self.savepoint():
                return {str(salon.id): salon for salon in self.providers.salons_by_ids(ids)}
        except DataAccessError as exc:
            logger.warning("Salon details unavailable", extra={"kind": exc.kind.value})
            return {}
    
    def _therapist_details(self, ids: List[Any]) -> Dict[str, Therapist]:
        try:
            with self.savepoint():
                return {str(t.id): t for t in self.providers.therapists_by_ids(ids)}
        except DataAccessError as exc:
            logger.warning("Therapist details unavailable", extra={"kind": exc.kind.value})
            return {}
    
    def locate(
        self,
        service_id: UUID,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        location: Optional[str] = None,
        tab: ProviderTab = ProviderTab.ALL,
        user_id: Optional[UUID] = None,
        token: Optional[CancellationToken] = None,
    ) -> ProviderSearchResult:
        """
        Search providers of a service around the effective location.
        
        Args:
            service_id: Service to search providers for
            latitude: Client latitude (0 or None means unknown)
            longitude: Client longitude (0 or None means unknown)
            location: "district, city" or "city" as typed by the client
            tab: all, salon or individual
            user_id: Authenticated caller, used for the saved location
            token: Cancellation token of the request
            
        Returns:
            ProviderSearchResult; `error` is set when matching failed
            
        Raises:
            NotFoundError: If the service does not exist
            OperationCancelled: If the token was cancelled mid-way
        """
        token = token or CancellationToken.none()
        
        service = service_summary(self.services.get_service(service_id))
        token.raise_if_cancelled("provider_search")
        
        saved = None
        if not latitude and not longitude:
            saved = self._saved_location(user_id)
        where = resolve_location(latitude, longitude, location, saved)
        
        def result(providers: List[ProviderMatch], error: Optional[str] = None) -> ProviderSearchResult:
            return ProviderSearchResult(
                service=service,
                tab=tab,
                city=where.city,
                district=where.district,
                providers=providers,
                total=len(providers),
                is_empty=not providers,
                error=error,
            )
        
        try:
            rows = self.providers.nearby_providers(
                service_id,
                where.latitude,
                where.longitude,
                self.radius_meters,
                city=where.city,
                district=where.district,
            )
        except DataAccessError as exc:
            logger.error(
                "Provider matching failed",
                extra={"service_id": str(service_id), "kind": exc.kind.value},
            )
            self.metrics.increment_provider_searches(outcome="failed")
            return result([], error=exc.kind.value)
        token.raise_if_cancelled("provider_search")
        
        salons = self._salon_details([row["id"] for row in rows if row.get("type") == "salon"])
        therapists = self._therapist_details([row["id"] for row in rows if row.get("type") == "therapist"])
        token.raise_if_cancelled("provider_search")
        
        providers = merge_provider_details(rows, salons, therapists)
        if where.district:
            providers = sort_by_match_tier(providers)
        providers = filter_by_tab(providers, tab)
        
        self.metrics.increment_provider_searches(outcome="ok" if providers else "empty")
        logger.info(
            f"Provider search returned {len(providers)} of {len(rows)} rows",
            extra={"service_id": str(service_id), "tab": tab.value},
        )
        return result(providers)
