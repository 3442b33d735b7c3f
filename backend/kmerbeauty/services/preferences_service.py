"""
Client preference store.

Typed accessors over the (user, key) -> JSON table that replaces the
browser-local state of the web client: the last searched location and
the install-app popup flags. Every read falls back to a default and
every change is written through immediately.
"""
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ValidationError

from kmerbeauty.lib.logging import get_logger
from kmerbeauty.repositories.preferences import PreferenceRepository


logger = get_logger(__name__)

USER_LOCATION_KEY = "userLocation"
POPUP_DISMISSED_KEY = "installAppPopupDismissed"
POPUP_LAST_SHOWN_KEY = "installAppPopupLastShown"

POPUP_REMINDER_MS = 7 * 24 * 60 * 60 * 1000


class Coordinates(BaseModel):
    lat: float
    lon: float


class SavedLocation(BaseModel):
    """Last location chosen by the client, as typed and as coordinates."""
    query: str = ""
    coords: Optional[Coordinates] = None


class PopupDecision(BaseModel):
    should_show: bool
    dismissed: bool
    last_shown: Optional[int] = None


def epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def should_show_install_popup(dismissed: bool, last_shown_ms: Optional[int], now_ms: int) -> bool:
    """
    Show when never dismissed, or when last shown more than 7 days ago.
    
    A dismissed popup with no recorded display stays hidden.
    """
    if not dismissed:
        return True
    return last_shown_ms is not None and last_shown_ms < now_ms - POPUP_REMINDER_MS


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class PreferenceStore:
    """Read-or-default, write-through access to one client's preferences."""
    
    def __init__(self, repository: PreferenceRepository):
        self.repository = repository
    
    def get_location(self, user_id: UUID) -> Optional[SavedLocation]:
        raw = self.repository.get_value(user_id, USER_LOCATION_KEY)
        if not raw:
            return None
        try:
            return SavedLocation.model_validate(raw)
        except ValidationError:
            logger.warning(
                "Ignoring malformed saved location",
                extra={"user_id": str(user_id)},
            )
            return None
    
    def set_location(self, user_id: UUID, location: SavedLocation) -> SavedLocation:
        self.repository.set_value(user_id, USER_LOCATION_KEY, location.model_dump())
        return location
    
    def install_popup(self, user_id: UUID, now: Optional[datetime] = None) -> PopupDecision:
        """
        Decide whether the install-app popup should be shown.
        
        Answering yes records the display time, so the next reminder is
        only due a week later.
        """
        now_ms = epoch_ms(now or datetime.now(timezone.utc))
        dismissed = bool(self.repository.get_value(user_id, POPUP_DISMISSED_KEY))
        last_shown = _as_int(self.repository.get_value(user_id, POPUP_LAST_SHOWN_KEY))
        
        show = should_show_install_popup(dismissed, last_shown, now_ms)
        if show:
            self.repository.set_value(user_id, POPUP_LAST_SHOWN_KEY, now_ms)
            last_shown = now_ms
        return PopupDecision(should_show=show, dismissed=dismissed, last_shown=last_shown)
    
    def dismiss_install_popup(self, user_id: UUID) -> None:
        self.repository.set_value(user_id, POPUP_DISMISSED_KEY, True)
