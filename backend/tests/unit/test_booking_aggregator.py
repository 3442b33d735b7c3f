"""
Unit tests for the booking list aggregator.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import (
    FakeBookingRepository,
    FakeServiceRepository,
    FakeTransaction,
    FakeUserRepository,
    make_user,
    raising,
)
from kmerbeauty.lib.errors import NetworkError
from kmerbeauty.lib.metrics import get_metrics_collector
from kmerbeauty.models import Booking, BookingItem, Salon, Service, Therapist
from kmerbeauty.services.booking_aggregator import (
    BookingAggregator,
    BookingTab,
    build_image_index,
    collect_enrichment_keys,
    enrich_booking,
    partition_bookings,
)


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_booking(user_id, scheduled_at, status="CONFIRMED", items=(), salon=None, therapist=None):
    return Booking(
        id=uuid4(),
        user_id=user_id,
        scheduled_at=scheduled_at,
        status=status,
        total=Decimal("15000"),
        created_at=NOW - timedelta(days=2),
        salon=salon,
        therapist=therapist,
        items=[BookingItem(id=uuid4(), service_name=name, price=Decimal("15000"), duration=60) for name in items],
    )


@pytest.mark.unit
def test_unmatched_service_name_gets_empty_images():
    booking = make_booking(uuid4(), NOW, items=["Manucure russe"])
    view = enrich_booking(booking, {"Tresses": ["https://cdn/braids.jpg"]}, {})
    assert view.items[0].images == []
    assert view.image is None


@pytest.mark.unit
def test_images_match_either_language():
    services = [Service(id=uuid4(), name_fr="Tresses", name_en="Braids", images=["https://cdn/braids.jpg"])]
    index = build_image_index(services)
    booking = make_booking(uuid4(), NOW, items=["Braids", "Tresses"])
    view = enrich_booking(booking, index, {})
    assert [item.images for item in view.items] == [["https://cdn/braids.jpg"], ["https://cdn/braids.jpg"]]
    assert view.image == "https://cdn/braids.jpg"


@pytest.mark.unit
def test_collect_keys_only_for_unnamed_therapists():
    named = Therapist(id=uuid4(), user_id=uuid4(), business_name="Beauté Divine")
    unnamed = Therapist(id=uuid4(), user_id=uuid4(), business_name="")
    bookings = [
        make_booking(uuid4(), NOW, items=["Tresses", "Pédicure"], therapist=named),
        make_booking(uuid4(), NOW, items=["Tresses"], therapist=unnamed),
    ]
    names, user_ids = collect_enrichment_keys(bookings)
    assert names == {"Tresses", "Pédicure"}
    assert user_ids == {unnamed.user_id}


@pytest.mark.unit
def test_therapist_name_fallback():
    therapist = Therapist(id=uuid4(), user_id=uuid4(), business_name=None, city="Douala")
    booking = make_booking(uuid4(), NOW, therapist=therapist)
    view = enrich_booking(booking, {}, {therapist.user_id: "Mireille Etoa"})
    assert view.therapist.business_name == "Mireille Etoa"
    assert view.provider_name == "Mireille Etoa"

    unchanged = enrich_booking(booking, {}, {})
    assert unchanged.therapist.business_name is None


@pytest.mark.unit
def test_partition_upcoming_and_past():
    user_id = uuid4()
    future = make_booking(user_id, NOW + timedelta(days=1))
    pending_in_past = make_booking(user_id, NOW - timedelta(days=1), status="PENDING")
    done = make_booking(user_id, NOW - timedelta(days=1), status="COMPLETED")
    exactly_now = make_booking(user_id, NOW, status="CONFIRMED")
    views = [enrich_booking(b, {}, {}) for b in (future, pending_in_past, done, exactly_now)]

    upcoming, past = partition_bookings(views, NOW)

    assert [v.id for v in upcoming] == [future.id, pending_in_past.id]
    assert [v.id for v in past] == [done.id]


@pytest.mark.unit
def test_naive_timestamps_are_utc():
    booking = make_booking(uuid4(), datetime(2026, 3, 11, 9, 0))
    upcoming, past = partition_bookings([enrich_booking(booking, {}, {})], NOW)
    assert len(upcoming) == 1 and past == []


@pytest.mark.unit
def test_aggregator_enriches_and_splits():
    client = make_user()
    stylist = make_user(role="PROVIDER", first_name="Mireille", last_name="Etoa")
    therapist = Therapist(id=uuid4(), user_id=stylist.id, business_name="")
    salon = Salon(id=uuid4(), name_fr="Institut Bonapriso", city="Douala")
    bookings = [
        make_booking(client.id, NOW + timedelta(days=3), items=["Tresses"], therapist=therapist),
        make_booking(client.id, NOW - timedelta(days=3), status="COMPLETED", items=["Inconnu"], salon=salon),
    ]
    services = [Service(id=uuid4(), name_fr="Tresses", name_en="Braids", images=["https://cdn/braids.jpg"])]
    aggregator = BookingAggregator(
        FakeBookingRepository(bookings),
        FakeServiceRepository(services),
        FakeUserRepository([client, stylist]),
    )

    result = aggregator.list_for_user(client.id, now=NOW)

    assert result.error is None
    assert len(result.upcoming) == 1 and len(result.past) == 1
    assert result.upcoming[0].provider_name == "Mireille Etoa"
    assert result.upcoming[0].items[0].images == ["https://cdn/braids.jpg"]
    assert result.past[0].provider_name == "Institut Bonapriso"
    assert result.past[0].items[0].images == []
    assert get_metrics_collector().get_counter_value("booking_enrichment_misses_total", {"kind": "image"}) == 1


@pytest.mark.unit
def test_tab_keeps_one_list():
    client = make_user()
    bookings = [
        make_booking(client.id, NOW + timedelta(days=1)),
        make_booking(client.id, NOW - timedelta(days=1), status="COMPLETED"),
    ]
    aggregator = BookingAggregator(FakeBookingRepository(bookings), FakeServiceRepository(), FakeUserRepository())

    upcoming_only = aggregator.list_for_user(client.id, tab=BookingTab.UPCOMING, now=NOW)
    past_only = aggregator.list_for_user(client.id, tab=BookingTab.PAST, now=NOW)

    assert len(upcoming_only.upcoming) == 1 and upcoming_only.past == []
    assert past_only.upcoming == [] and len(past_only.past) == 1


@pytest.mark.unit
def test_enrichment_failure_is_not_an_error():
    client = make_user()
    services = FakeServiceRepository()
    services.services_by_names = raising(NetworkError("Database unavailable"))
    bookings = [make_booking(client.id, NOW + timedelta(days=1), items=["Tresses"])]

    result = BookingAggregator(FakeBookingRepository(bookings), services, FakeUserRepository()).list_for_user(
        client.id, now=NOW
    )

    assert result.error is None
    assert result.upcoming[0].items[0].images == []


@pytest.mark.unit
def test_primary_failure_returns_error_kind():
    bookings = FakeBookingRepository()
    bookings.list_for_user = raising(NetworkError("Database unavailable"))

    result = BookingAggregator(bookings, FakeServiceRepository(), FakeUserRepository()).list_for_user(uuid4())

    assert result.upcoming == [] and result.past == []
    assert result.error == "network_error"


@pytest.mark.unit
def test_image_failure_does_not_break_therapist_names():
    tx = FakeTransaction()
    client = make_user()
    stylist = make_user(role="PROVIDER", first_name="Mireille", last_name="Etoa")
    therapist = Therapist(id=uuid4(), user_id=stylist.id, business_name="")
    services = FakeServiceRepository()
    services.services_by_names = tx.statement(raising(NetworkError("Database unavailable")))
    users = FakeUserRepository([client, stylist])
    users.users_by_ids = tx.statement(users.users_by_ids)
    bookings = [make_booking(client.id, NOW + timedelta(days=1), items=["Tresses"], therapist=therapist)]

    aggregator = BookingAggregator(FakeBookingRepository(bookings), services, users, savepoint=tx.savepoint)
    result = aggregator.list_for_user(client.id, now=NOW)

    assert result.error is None
    assert result.upcoming[0].items[0].images == []
    assert result.upcoming[0].provider_name == "Mireille Etoa"
    assert not tx.aborted


@pytest.mark.unit
def test_each_enrichment_lookup_runs_in_its_own_savepoint():
    tx = FakeTransaction()
    client = make_user()
    therapist = Therapist(id=uuid4(), user_id=uuid4(), business_name=None)
    bookings = [make_booking(client.id, NOW, items=["Tresses"], therapist=therapist)]

    BookingAggregator(
        FakeBookingRepository(bookings),
        FakeServiceRepository(),
        FakeUserRepository(),
        savepoint=tx.savepoint,
    ).list_for_user(client.id, now=NOW)

    assert tx.savepoints == 2
