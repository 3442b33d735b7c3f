"""
API dependencies for FastAPI dependency injection.

Provides database sessions, token-based identity and the wiring of
repositories into the aggregators. Tests replace the aggregator
providers through `app.dependency_overrides`.
"""
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jwt.exceptions import InvalidTokenError
from sqlalchemy.orm import Session

from kmerbeauty.api.middleware.error_handler import ForbiddenException, UnauthorizedException
from kmerbeauty.lib.db import get_db as get_db_session
from kmerbeauty.lib.jwt import get_user_id_from_token
from kmerbeauty.models.users import UserRole
from kmerbeauty.repositories import (
    BetaTestRepository,
    BookingRepository,
    ChatRepository,
    OperationsRepository,
    PreferenceRepository,
    ProviderRepository,
    ServiceRepository,
    UserRepository,
)
from kmerbeauty.services.beta_tests import BetaTestReporter, BetaTestTracker
from kmerbeauty.services.booking_aggregator import BookingAggregator
from kmerbeauty.services.chat_service import ChatService
from kmerbeauty.services.dashboard_service import DashboardAggregator
from kmerbeauty.services.geocoding_service import NominatimClient, get_geocoding_client
from kmerbeauty.services.preferences_service import PreferenceStore
from kmerbeauty.services.provider_locator import ProviderLocator


# Re-export get_db for convenience
get_db = get_db_session


# Missing credentials are reported as 401 by get_current_user_id
security = HTTPBearer(auto_error=False)


def _user_id_from_credentials(credentials: HTTPAuthorizationCredentials) -> UUID:
    try:
        return UUID(get_user_id_from_token(credentials.credentials))
    except (InvalidTokenError, ValueError) as e:
        raise UnauthorizedException(f"Could not validate credentials: {e}")


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UUID:
    """
    Dependency to get the authenticated user's id from the bearer token.
    
    Raises:
        UnauthorizedException: 401 if the token is missing or invalid
    """
    if not credentials:
        raise UnauthorizedException("Missing authentication token")
    return _user_id_from_credentials(credentials)


def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UUID]:
    """
    Dependency to get the caller's id if authenticated, None otherwise.
    
    Useful for endpoints that work with or without authentication.
    """
    if not credentials:
        return None
    try:
        return _user_id_from_credentials(credentials)
    except UnauthorizedException:
        return None


def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def require_admin(
    user_id: UUID = Depends(get_current_user_id),
    users: UserRepository = Depends(get_user_repository),
) -> UUID:
    """
    Dependency restricting a route to ADMIN accounts.
    
    Raises:
        ForbiddenException: 403 if the caller is not an admin
    """
    if users.get_role(user_id) != UserRole.ADMIN.value:
        raise ForbiddenException("Admin access required")
    return user_id


def get_preference_store(db: Session = Depends(get_db)) -> PreferenceStore:
    return PreferenceStore(PreferenceRepository(db))


def get_provider_locator(
    db: Session = Depends(get_db),
    preferences: PreferenceStore = Depends(get_preference_store),
) -> ProviderLocator:
    providers = ProviderRepository(db)
    return ProviderLocator(
        ServiceRepository(db),
        providers,
        preferences,
        savepoint=providers.isolated,
    )


def get_service_repository(db: Session = Depends(get_db)) -> ServiceRepository:
    return ServiceRepository(db)


def get_booking_aggregator(db: Session = Depends(get_db)) -> BookingAggregator:
    bookings = BookingRepository(db)
    return BookingAggregator(
        bookings,
        ServiceRepository(db),
        UserRepository(db),
        savepoint=bookings.isolated,
    )


def get_beta_test_tracker(db: Session = Depends(get_db)) -> BetaTestTracker:
    return BetaTestTracker(BetaTestRepository(db))


def get_beta_test_reporter(db: Session = Depends(get_db)) -> BetaTestReporter:
    return BetaTestReporter(BetaTestRepository(db), UserRepository(db))


def get_dashboard_aggregator(db: Session = Depends(get_db)) -> DashboardAggregator:
    users = UserRepository(db)
    return DashboardAggregator(
        users,
        BookingRepository(db),
        OperationsRepository(db),
        savepoint=users.isolated,
    )


def get_chat_service(db: Session = Depends(get_db)) -> ChatService:
    return ChatService(ChatRepository(db), ProviderRepository(db))


def get_geocoder() -> NominatimClient:
    return get_geocoding_client()
