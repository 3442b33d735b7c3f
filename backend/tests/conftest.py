"""
Shared fixtures: in-memory repositories, access tokens and an API client
wired to them through dependency overrides. No database is needed.
"""
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

import jwt
import pytest
from fastapi.testclient import TestClient

from kmerbeauty.api import dependencies
from kmerbeauty.api.app import app
from kmerbeauty.lib.errors import DataAccessError, NotFoundError, UnknownDataError
from kmerbeauty.lib.metrics import reset_metrics
from kmerbeauty.lib.settings import settings
from kmerbeauty.models import BetaTestResult, Chat, ChatMessage, Service, User
from kmerbeauty.services.beta_tests import BetaTestReporter, BetaTestTracker
from kmerbeauty.services.booking_aggregator import BookingAggregator
from kmerbeauty.services.chat_service import ChatService
from kmerbeauty.services.dashboard_service import DashboardAggregator
from kmerbeauty.services.preferences_service import PreferenceStore
from kmerbeauty.services.provider_locator import ProviderLocator


# ===== In-memory repositories =====

class FakeServiceRepository:
    def __init__(self, services: Optional[List[Service]] = None):
        self.services = list(services or [])

    def get_service(self, service_id):
        for service in self.services:
            if service.id == service_id:
                return service
        raise NotFoundError("Service", str(service_id))

    def services_by_names(self, names):
        wanted = set(names)
        return [s for s in self.services if s.name_fr in wanted or s.name_en in wanted]


class FakeProviderRepository:
    def __init__(self, rows=None, salons=None, therapists=None, owners=None):
        self.rows = list(rows or [])
        self.salons = list(salons or [])
        self.therapists = list(therapists or [])
        self.owners: Dict[Any, UUID] = dict(owners or {})
        self.calls: List[Dict[str, Any]] = []

    def nearby_providers(self, service_id, latitude, longitude, radius_meters, city=None, district=None):
        self.calls.append({
            "service_id": service_id,
            "lat": latitude,
            "lng": longitude,
            "radius_meters": radius_meters,
            "city": city,
            "district": district,
        })
        return [dict(row) for row in self.rows]

    def salons_by_ids(self, ids):
        wanted = {str(i) for i in ids}
        return [s for s in self.salons if str(s.id) in wanted]

    def therapists_by_ids(self, ids):
        wanted = {str(i) for i in ids}
        return [t for t in self.therapists if str(t.id) in wanted]

    def provider_user_id(self, provider_id, provider_type):
        key = (provider_type, provider_id)
        if key not in self.owners:
            raise NotFoundError(provider_type.capitalize(), str(provider_id))
        return self.owners[key]


class FakeUserRepository:
    def __init__(self, users: Optional[List[User]] = None):
        self.users = {user.id: user for user in users or []}

    def get_role(self, user_id):
        user = self.users.get(user_id)
        return user.role if user else None

    def users_by_ids(self, ids):
        return [self.users[i] for i in set(ids) if i in self.users]

    def count_users(self, role, is_active=None, is_verified=None):
        return sum(
            1 for user in self.users.values()
            if user.role == role
            and (is_active is None or user.is_active == is_active)
            and (is_verified is None or user.is_verified == is_verified)
        )


class FakeBookingRepository:
    def __init__(self, bookings=None):
        self.bookings = list(bookings or [])

    def list_for_user(self, user_id):
        rows = [b for b in self.bookings if b.user_id == user_id]
        return sorted(rows, key=lambda b: b.scheduled_at, reverse=True)

    def completed_total(self):
        return sum((b.total or 0 for b in self.bookings if b.status == "COMPLETED"), 0)

    def count_created_since(self, since):
        return sum(1 for b in self.bookings if b.created_at and b.created_at >= since)

    def latest(self, limit=5):
        return sorted(self.bookings, key=lambda b: b.created_at, reverse=True)[:limit]


class FakeBetaTestRepository:
    def __init__(self):
        self.rows: Dict[tuple, BetaTestResult] = {}

    def results_for(self, user_id, role):
        return [r for r in self.rows.values() if r.user_id == user_id and r.user_type == role]

    def upsert(self, user_id, role, test_id, status, comment, device_info, tested_at):
        existing = self.rows.get((user_id, test_id))
        self.rows[(user_id, test_id)] = BetaTestResult(
            id=existing.id if existing else uuid4(),
            user_id=user_id,
            user_type=role,
            test_id=test_id,
            status=status,
            comment=comment,
            device_info=device_info,
            tested_at=tested_at,
        )

    def delete_for(self, user_id, role):
        doomed = [k for k, r in self.rows.items() if r.user_id == user_id and r.user_type == role]
        for key in doomed:
            del self.rows[key]
        return len(doomed)

    def all_results(self):
        return sorted(self.rows.values(), key=lambda r: r.tested_at, reverse=True)


class FakeOperationsRepository:
    def __init__(self, open_tickets=0, revenue=0, purchases=None, top=None):
        self.open_tickets = open_tickets
        self.revenue = revenue
        self.purchases = list(purchases or [])
        self.top = top

    def count_open_tickets(self):
        return self.open_tickets

    def completed_credit_revenue(self):
        return self.revenue

    def completed_purchases_since(self, since):
        return [(at, amount) for at, amount in self.purchases if at >= since]

    def top_provider(self):
        return self.top


class FakeChatRepository:
    def __init__(self):
        self.chats: Dict[UUID, Chat] = {}
        self.messages: List[ChatMessage] = []

    def get_chat(self, chat_id):
        return self.chats.get(chat_id)

    def find_direct_chat(self, client_id, provider_user_id):
        for chat in self.chats.values():
            if chat.client_id == client_id and chat.provider_id == provider_user_id and chat.booking_id is None:
                return chat
        return None

    def create_chat(self, client_id, provider_user_id):
        chat = Chat(
            id=uuid4(),
            client_id=client_id,
            provider_id=provider_user_id,
            booking_id=None,
            is_active=True,
            created_at=datetime.now(timezone.utc),
        )
        self.chats[chat.id] = chat
        return chat

    def list_messages(self, chat_id, limit=50, offset=0):
        rows = [m for m in self.messages if m.chat_id == chat_id]
        return rows[offset:offset + limit]

    def add_message(self, chat_id, sender_id, content, message_type, attachments):
        message = ChatMessage(
            id=uuid4(),
            chat_id=chat_id,
            sender_id=sender_id,
            content=content,
            type=message_type,
            attachments=attachments,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message

    def touch_last_message(self, chat_id, content, at):
        chat = self.chats[chat_id]
        chat.last_message = content
        chat.last_message_at = at


class FakePreferenceRepository:
    def __init__(self):
        self.values: Dict[tuple, Any] = {}

    def get_value(self, user_id, key):
        return self.values.get((user_id, key))

    def set_value(self, user_id, key, value):
        self.values[(user_id, key)] = value


def raising(error: Exception):
    """Stand-in for a repository method that always fails."""
    def fail(*args, **kwargs):
        raise error
    return fail


class FakeTransaction:
    """
    Mimics a Postgres transaction: once a statement fails outside a
    savepoint, every later statement fails until rollback.
    """
    def __init__(self):
        self.aborted = False
        self.savepoints = 0

    @contextmanager
    def savepoint(self):
        self.savepoints += 1
        aborted = self.aborted
        try:
            yield
        except DataAccessError:
            # ROLLBACK TO SAVEPOINT
            self.aborted = aborted
            raise

    def statement(self, fn):
        """Run repository method `fn` as a statement of this transaction."""
        def run(*args, **kwargs):
            if self.aborted:
                raise UnknownDataError("current transaction is aborted")
            try:
                return fn(*args, **kwargs)
            except DataAccessError:
                self.aborted = True
                raise
        return run


# ===== Builders =====

def make_user(role="CLIENT", first_name="Awa", last_name="Ngono", **kwargs) -> User:
    values = {
        "id": uuid4(),
        "email": f"{first_name.lower()}@example.cm" if first_name else None,
        "first_name": first_name,
        "last_name": last_name,
        "role": role,
        "is_active": True,
        "is_verified": True,
    }
    values.update(kwargs)
    return User(**values)


def make_token(user_id, expires_in: timedelta = timedelta(hours=1), **claims) -> str:
    payload = {
        "sub": str(user_id),
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + expires_in,
        "role": "authenticated",
    }
    payload.update(claims)
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user_id) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


# ===== Fixtures =====

@pytest.fixture(autouse=True)
def fresh_metrics():
    """Counters start from zero in every test."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def repos():
    """One set of in-memory repositories shared by all aggregators of a test."""
    class Repos:
        services = FakeServiceRepository()
        providers = FakeProviderRepository()
        users = FakeUserRepository()
        bookings = FakeBookingRepository()
        beta_tests = FakeBetaTestRepository()
        operations = FakeOperationsRepository()
        chats = FakeChatRepository()
        preferences = FakePreferenceRepository()

    return Repos()


@pytest.fixture
def client(repos):
    """Test client whose aggregators run on the in-memory repositories."""
    overrides = {
        dependencies.get_user_repository: lambda: repos.users,
        dependencies.get_service_repository: lambda: repos.services,
        dependencies.get_preference_store: lambda: PreferenceStore(repos.preferences),
        dependencies.get_provider_locator: lambda: ProviderLocator(
            repos.services, repos.providers, PreferenceStore(repos.preferences)
        ),
        dependencies.get_booking_aggregator: lambda: BookingAggregator(
            repos.bookings, repos.services, repos.users
        ),
        dependencies.get_beta_test_tracker: lambda: BetaTestTracker(repos.beta_tests),
        dependencies.get_beta_test_reporter: lambda: BetaTestReporter(repos.beta_tests, repos.users),
        dependencies.get_dashboard_aggregator: lambda: DashboardAggregator(
            repos.users, repos.bookings, repos.operations
        ),
        dependencies.get_chat_service: lambda: ChatService(repos.chats, repos.providers),
    }
    app.dependency_overrides.update(overrides)
    yield TestClient(app)
    app.dependency_overrides.clear()
