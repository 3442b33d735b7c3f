"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from kmerbeauty.models.users import User, UserRole
from kmerbeauty.models.providers import Salon, Therapist
from kmerbeauty.models.services import Service
from kmerbeauty.models.bookings import Booking, BookingItem, BookingStatus
from kmerbeauty.models.beta_tests import BetaTestResult, BetaTestStatus, TesterRole
from kmerbeauty.models.operations import SupportConversation, CreditPurchase
from kmerbeauty.models.chats import Chat, ChatMessage, MessageType
from kmerbeauty.models.preferences import ClientPreference

__all__ = [
    "User",
    "UserRole",
    "Salon",
    "Therapist",
    "Service",
    "Booking",
    "BookingItem",
    "BookingStatus",
    "BetaTestResult",
    "BetaTestStatus",
    "TesterRole",
    "SupportConversation",
    "CreditPurchase",
    "Chat",
    "ChatMessage",
    "MessageType",
    "ClientPreference",
]
