"""
Address autocomplete and reverse geocoding through OpenStreetMap Nominatim.

Nominatim's usage policy requires an identifying User-Agent and at most
about one request per second, so outgoing calls are spaced and answers
are cached in-process per normalized query.
"""
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, Hashable, List, Mapping, Optional

import httpx
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from kmerbeauty.lib.errors import NetworkError
from kmerbeauty.lib.logging import get_logger
from kmerbeauty.lib.metrics import get_metrics_collector
from kmerbeauty.lib.settings import settings


logger = get_logger(__name__)

MIN_QUERY_LENGTH = 3
SEARCH_LIMIT = 5
COUNTRY_CODES = "cm"
CACHE_SIZE = 256

CITY_FIELDS = ("city", "town", "village", "municipality", "state")
DISTRICT_FIELDS = ("suburb", "neighbourhood", "quarter")


class PlaceSuggestion(BaseModel):
    display_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    district: Optional[str] = None
    region: Optional[str] = None
    query: str


def _first(address: Mapping[str, Any], fields) -> Optional[str]:
    for field in fields:
        if address.get(field):
            return address[field]
    return None


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_suggestion(raw: Mapping[str, Any]) -> PlaceSuggestion:
    """
    Map one Nominatim result (with addressdetails) to a suggestion.
    
    `query` is what the provider search expects: "district, city" when
    both are known, else the city, else the display name.
    """
    address = raw.get("address") or {}
    city = _first(address, CITY_FIELDS)
    district = _first(address, DISTRICT_FIELDS)
    display_name = raw.get("display_name") or ""
    if district and city:
        query = f"{district}, {city}"
    else:
        query = city or display_name
    return PlaceSuggestion(
        display_name=display_name,
        latitude=_as_float(raw.get("lat")),
        longitude=_as_float(raw.get("lon")),
        city=city,
        district=district,
        region=address.get("state") or address.get("region"),
        query=query,
    )


def normalize_query(query: Optional[str]) -> str:
    return " ".join((query or "").split()).lower()


class NominatimClient:
    """Rate-limited, cached Nominatim client."""
    
    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        min_interval_seconds: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.nominatim_base_url).rstrip("/")
        self.http = http_client or httpx.Client(timeout=settings.nominatim_timeout_seconds)
        self.headers = {
            "User-Agent": user_agent or settings.nominatim_user_agent,
            "Accept": "application/json",
        }
        if min_interval_seconds is None:
            min_interval_seconds = settings.nominatim_min_interval_seconds
        self.min_interval_seconds = min_interval_seconds
        self.metrics = get_metrics_collector()
        
        self._cache: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._cache_lock = threading.Lock()
        self._rate_lock = threading.Lock()
        self._next_slot_at = 0.0
    
    def _wait_turn(self) -> None:
        """
        Reserve the next request slot and sleep until it opens.
        
        Slots are min_interval_seconds apart. The sleep happens outside
        the lock.
        """
        with self._rate_lock:
            now = time.monotonic()
            slot = max(now, self._next_slot_at)
            self._next_slot_at = slot + self.min_interval_seconds
        delay = slot - now
        if delay > 0:
            time.sleep(delay)
    
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.25, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    def _fetch(self, path: str, params: Dict[str, Any]) -> Any:
        self._wait_turn()
        response = self.http.get(f"{self.base_url}/{path}", params=params, headers=self.headers)
        if response.status_code >= 400:
            logger.warning(
                f"Nominatim error {response.status_code}",
                extra={"path": path, "body": response.text[:200]},
            )
            raise NetworkError("Geocoding provider error", {"status_code": response.status_code})
        return response.json()
    
    def _cached(self, key: Hashable, path: str, params: Dict[str, Any]) -> Any:
        with self._cache_lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                self.metrics.increment_geocoding_requests("cached")
                return self._cache[key]
        
        try:
            data = self._fetch(path, params)
        except httpx.TransportError as exc:
            self.metrics.increment_geocoding_requests("failed")
            logger.error("Nominatim unreachable", extra={"path": path}, exc_info=True)
            raise NetworkError("Geocoding provider unreachable") from exc
        except NetworkError:
            self.metrics.increment_geocoding_requests("failed")
            raise
        
        self.metrics.increment_geocoding_requests("ok")
        with self._cache_lock:
            self._cache[key] = data
            while len(self._cache) > CACHE_SIZE:
                self._cache.popitem(last=False)
        return data
    
    def search(self, query: Optional[str]) -> List[PlaceSuggestion]:
        """
        Up to five Cameroon places matching a free-text query.
        
        Queries shorter than three characters return [] without a request.
        
        Raises:
            NetworkError: If Nominatim fails after retries
        """
        text = (query or "").strip()
        if len(text) < MIN_QUERY_LENGTH:
            return []
        params = {
            "q": text,
            "format": "json",
            "countrycodes": COUNTRY_CODES,
            "addressdetails": 1,
            "limit": SEARCH_LIMIT,
        }
        raw = self._cached(("search", normalize_query(text)), "search", params)
        return [to_suggestion(item) for item in raw or [] if item.get("display_name")]
    
    def reverse(self, latitude: float, longitude: float) -> Optional[PlaceSuggestion]:
        """
        Place at a point, None when Nominatim knows nothing there.
        
        Raises:
            NetworkError: If Nominatim fails after retries
        """
        params = {
            "lat": latitude,
            "lon": longitude,
            "format": "json",
            "addressdetails": 1,
        }
        raw = self._cached(("reverse", round(latitude, 5), round(longitude, 5)), "reverse", params)
        if not raw or raw.get("error") or not raw.get("display_name"):
            return None
        return to_suggestion(raw)
    
    def close(self) -> None:
        self.http.close()


_client: Optional[NominatimClient] = None
_client_lock = threading.Lock()


def get_geocoding_client() -> NominatimClient:
    """Process-wide client, so rate limit and cache are shared."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = NominatimClient()
    return _client


def close_geocoding_client() -> None:
    """Close the process-wide client; the next call builds a fresh one."""
    global _client
    with _client_lock:
        if _client is not None:
            _client.close()
            _client = None
