"""
Repositories - the only code that talks to the database.

Every public method either returns rows or raises a DataAccessError.
"""
from kmerbeauty.repositories.base import BaseRepository
from kmerbeauty.repositories.beta_tests import BetaTestRepository
from kmerbeauty.repositories.bookings import BookingRepository
from kmerbeauty.repositories.catalog import ProviderRepository, ServiceRepository
from kmerbeauty.repositories.chats import ChatRepository
from kmerbeauty.repositories.operations import OperationsRepository
from kmerbeauty.repositories.preferences import PreferenceRepository
from kmerbeauty.repositories.users import UserRepository

__all__ = [
    "BaseRepository",
    "BetaTestRepository",
    "BookingRepository",
    "ChatRepository",
    "OperationsRepository",
    "PreferenceRepository",
    "ProviderRepository",
    "ServiceRepository",
    "UserRepository",
]
