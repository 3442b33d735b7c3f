"""
Client preference API routes - saved location and install-app popup.
"""
from uuid import UUID

from fastapi import APIRouter, Depends

from kmerbeauty.api.dependencies import get_current_user_id, get_preference_store
from kmerbeauty.services.preferences_service import PopupDecision, PreferenceStore, SavedLocation


router = APIRouter(prefix="/me", tags=["preferences"])


@router.get("/location", response_model=SavedLocation)
def get_location(
    user_id: UUID = Depends(get_current_user_id),
    store: PreferenceStore = Depends(get_preference_store),
) -> SavedLocation:
    """Last location chosen by the caller; empty when none was saved."""
    return store.get_location(user_id) or SavedLocation()


@router.put("/location", response_model=SavedLocation)
def set_location(
    body: SavedLocation,
    user_id: UUID = Depends(get_current_user_id),
    store: PreferenceStore = Depends(get_preference_store),
) -> SavedLocation:
    return store.set_location(user_id, body)


@router.get("/install-popup", response_model=PopupDecision)
def get_install_popup(
    user_id: UUID = Depends(get_current_user_id),
    store: PreferenceStore = Depends(get_preference_store),
) -> PopupDecision:
    """
    Whether to show the install-app popup now.
    
    A positive answer is recorded as a display.
    """
    return store.install_popup(user_id)


@router.post("/install-popup/dismiss", response_model=PopupDecision)
def dismiss_install_popup(
    user_id: UUID = Depends(get_current_user_id),
    store: PreferenceStore = Depends(get_preference_store),
) -> PopupDecision:
    store.dismiss_install_popup(user_id)
    return PopupDecision(should_show=False, dismissed=True)
