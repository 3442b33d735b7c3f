"""
Geocoding API routes - address autocomplete proxy for Cameroon.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from kmerbeauty.api.dependencies import get_geocoder
from kmerbeauty.services.geocoding_service import NominatimClient, PlaceSuggestion


router = APIRouter(prefix="/geocoding", tags=["geocoding"])


@router.get("/search", response_model=List[PlaceSuggestion])
def search_places(
    q: str = Query("", max_length=200),
    geocoder: NominatimClient = Depends(get_geocoder),
) -> List[PlaceSuggestion]:
    """Up to five places; fewer than three characters returns an empty list."""
    return geocoder.search(q)


@router.get("/reverse", response_model=Optional[PlaceSuggestion])
def reverse_geocode(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    geocoder: NominatimClient = Depends(get_geocoder),
) -> Optional[PlaceSuggestion]:
    return geocoder.reverse(lat, lon)
