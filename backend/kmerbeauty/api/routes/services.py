"""
Services API routes - service details and nearby providers.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from kmerbeauty.api.dependencies import (
    get_optional_user_id,
    get_provider_locator,
    get_service_repository,
)
from kmerbeauty.lib.cancellation import CancellationToken
from kmerbeauty.lib.request_context import get_cancellation_token
from kmerbeauty.repositories.catalog import ServiceRepository
from kmerbeauty.services.provider_locator import (
    ProviderLocator,
    ProviderSearchResult,
    ProviderTab,
    ServiceSummary,
    service_summary,
)


# Router
router = APIRouter(prefix="/services", tags=["services"])


@router.get("/{service_id}", response_model=ServiceSummary)
def get_service(
    service_id: UUID,
    services: ServiceRepository = Depends(get_service_repository),
) -> ServiceSummary:
    """
    Get service details by ID.
    
    Raises 404 if the service is not found.
    """
    return service_summary(services.get_service(service_id))


@router.get("/{service_id}/providers", response_model=ProviderSearchResult)
def list_service_providers(
    service_id: UUID,
    lat: Optional[float] = Query(None, description="Client latitude"),
    lon: Optional[float] = Query(None, description="Client longitude"),
    location: Optional[str] = Query(None, description='"district, city" or "city"'),
    type: ProviderTab = Query(ProviderTab.ALL, description="all, salon or individual"),
    user_id: Optional[UUID] = Depends(get_optional_user_id),
    locator: ProviderLocator = Depends(get_provider_locator),
    token: CancellationToken = Depends(get_cancellation_token),
) -> ProviderSearchResult:
    """
    Salons and therapists offering a service near the client.
    
    Without coordinates the caller's saved location is used. When a
    district is known, providers in that district come first.
    A failed search returns an empty list with `error` set.
    """
    return locator.locate(
        service_id,
        latitude=lat,
        longitude=lon,
        location=location,
        tab=type,
        user_id=user_id,
        token=token,
    )
