"""
Tests for the BookingService orchestration layer and the in-memory store.
"""

from itertools import combinations

import pendulum
import pytest

from bookingengine.adapters.memory_store import InMemoryBookingStore
from bookingengine.domain.admission import Accepted, Rejected, RejectionReason
from bookingengine.domain.exceptions import StorageUnavailableError, UnknownServiceError
from bookingengine.domain.models import Appointment, BlackoutRule, Service, WorkingHoursPolicy
from bookingengine.services.booking_service import BookingService

TENANT = "la-barbiere"
MONDAY = pendulum.date(2024, 11, 25)

POLICY = WorkingHoursPolicy(
    start_time=540,
    end_time=1200,
    break_start=840,
    break_end=900,
    closed_weekdays=frozenset({0}),
)

SERVICES = [
    Service(id="1", name="Haircut", duration_minutes=30, price="12€"),
    Service(id="3", name="Haircut & Beard", duration_minutes=60, price="20€"),
]


def _fixed_clock(moment):
    return lambda: moment


def _build_service(store=None, now=None, blackout_rules=()):
    store = store or InMemoryBookingStore()
    store.register_tenant(TENANT, policy=POLICY, services=SERVICES, blackout_rules=blackout_rules)
    clock = _fixed_clock(now or pendulum.datetime(2024, 11, 1, 8, 0, tz="Europe/Lisbon"))
    return BookingService(store=store, tenant_id=TENANT, clock=clock), store


class StaleSnapshotStore(InMemoryBookingStore):
    """Store whose reads never see committed appointments, like a lagging replica."""

    def get_appointments(self, tenant_id, day):
        return []


class UnavailableStore(InMemoryBookingStore):
    """Store whose backend is down for reads."""

    def get_policy(self, tenant_id):
        raise StorageUnavailableError("backend timeout")


class TestAvailableSlots:
    """Tests for listing availability."""

    def test_lists_free_slots(self):
        """Test booked slots disappear from availability."""
        service, _ = _build_service()
        service.book(MONDAY, "13:00", "1", "Ana")

        starts = [slot.start_time for slot in service.available_slots(MONDAY, "1")]

        assert 780 not in starts
        assert 750 in starts
        assert 810 in starts

    def test_uses_service_duration(self):
        service, _ = _build_service()

        slots = service.available_slots(MONDAY, "3")

        assert all(slot.end_time - slot.start_time == 60 for slot in slots)
        assert slots[-1].end_time == 1200

    def test_respects_blackouts(self):
        rules = [BlackoutRule("Supplier", MONDAY, 600, 660)]
        service, _ = _build_service(blackout_rules=rules)

        starts = [slot.start_time for slot in service.available_slots("2024-11-25", "1")]

        assert 600 not in starts
        assert 630 not in starts

    def test_drops_past_slots_today(self):
        """Test slots that already started today are not offered."""
        service, _ = _build_service(now=pendulum.datetime(2024, 11, 25, 12, 10, tz="Europe/Lisbon"))

        slots = service.available_slots(MONDAY, "1")

        assert slots[0].start_time == 750

    def test_past_date_has_no_slots(self):
        """Test a date before today lists nothing, matching admission."""
        service, _ = _build_service(now=pendulum.datetime(2024, 11, 26, 8, 0, tz="Europe/Lisbon"))

        assert service.available_slots(MONDAY, "1") == []
        assert service.book(MONDAY, 540, "1", "Ana").reason is RejectionReason.INVALID_REQUEST

    def test_unknown_service(self):
        service, _ = _build_service()

        with pytest.raises(UnknownServiceError):
            service.available_slots(MONDAY, "99")

    def test_storage_failure_propagates(self):
        """Test collaborator failures surface unchanged."""
        service, _ = _build_service(store=UnavailableStore())

        with pytest.raises(StorageUnavailableError, match="backend timeout"):
            service.available_slots(MONDAY, "1")


class TestBook:
    """Tests for booking."""

    def test_book_commits_appointment(self):
        service, store = _build_service()

        result = service.book(MONDAY, "10:00", "3", "Ana", "910000000")

        assert isinstance(result, Accepted)
        stored = store.get_appointments(TENANT, MONDAY)
        assert len(stored) == 1
        assert stored[0].appointment_id == result.appointment.appointment_id
        assert (stored[0].start_time, stored[0].end_time) == (600, 660)

    def test_accepts_minutes(self):
        service, _ = _build_service()

        assert isinstance(service.book(MONDAY, 600, "1", "Ana"), Accepted)

    def test_double_booking_is_rejected(self):
        service, store = _build_service()
        service.book(MONDAY, "13:00", "1", "Ana")

        result = service.book(MONDAY, "13:15", "1", "Rui")

        assert isinstance(result, Rejected)
        assert result.reason is RejectionReason.OVERLAPS
        assert len(store.get_appointments(TENANT, MONDAY)) == 1

    def test_rejection_does_not_mutate_store(self):
        service, store = _build_service()
        service.book(MONDAY, "10:00", "1", "Ana")
        before = store.get_upcoming_appointments(TENANT, MONDAY)

        for start in ("10:00", "20:00", "14:00", "nonsense"):
            assert isinstance(service.book(MONDAY, start, "1", "Rui"), Rejected)

        assert store.get_upcoming_appointments(TENANT, MONDAY) == before

    def test_malformed_time_is_invalid_request(self):
        service, _ = _build_service()

        result = service.book(MONDAY, "25:99", "1", "Ana")

        assert result.reason is RejectionReason.INVALID_REQUEST

    def test_malformed_date_is_invalid_request(self):
        service, _ = _build_service()

        result = service.book("31/12/2024", "10:00", "1", "Ana")

        assert result.reason is RejectionReason.INVALID_REQUEST

    def test_commit_guard_catches_stale_snapshot(self):
        """Test the store refuses a second booking admitted from a stale read."""
        service, store = _build_service(store=StaleSnapshotStore())

        first = service.book(MONDAY, "10:00", "1", "Ana")
        second = service.book(MONDAY, "10:00", "1", "Rui")

        assert isinstance(first, Accepted)
        assert isinstance(second, Rejected)
        assert second.reason is RejectionReason.OVERLAPS

    def test_no_double_booking_across_many_requests(self):
        """Test no two stored appointments overlap after a burst of requests."""
        service, store = _build_service()

        for index, start in enumerate(range(540, 1200, 15)):
            service.book(MONDAY, start, "3" if index % 2 else "1", f"Client {index}")

        stored = store.get_appointments(TENANT, MONDAY)
        assert stored
        for first, second in combinations(stored, 2):
            assert not first.time_range.overlaps(second.time_range)


class TestRescheduleAndCancel:
    """Tests for moving and deleting appointments."""

    def test_reschedule_into_own_slot_with_longer_service(self):
        """Test the old appointment does not block its own replacement."""
        service, store = _build_service()
        original = service.book(MONDAY, "10:00", "1", "Ana", "910000000").appointment

        result = service.reschedule(original.appointment_id, MONDAY, "10:00", service_id="3")

        assert isinstance(result, Accepted)
        stored = store.get_appointments(TENANT, MONDAY)
        assert [appt.appointment_id for appt in stored] == [result.appointment.appointment_id]
        assert stored[0].end_time == 660
        assert stored[0].client_name == "Ana"
        assert stored[0].client_phone == "910000000"

    def test_reschedule_onto_other_booking_keeps_original(self):
        service, store = _build_service()
        original = service.book(MONDAY, "10:00", "1", "Ana").appointment
        service.book(MONDAY, "11:00", "1", "Rui")

        result = service.reschedule(original.appointment_id, MONDAY, "11:00")

        assert result.reason is RejectionReason.OVERLAPS
        assert store.get_appointment(TENANT, original.appointment_id) == original

    def test_reschedule_unknown_appointment(self):
        service, _ = _build_service()

        with pytest.raises(KeyError):
            service.reschedule("missing", MONDAY, "10:00")

    def test_cancel_frees_the_slot(self):
        service, _ = _build_service()
        booked = service.book(MONDAY, "10:00", "1", "Ana").appointment

        assert service.cancel(booked.appointment_id)
        assert not service.cancel(booked.appointment_id)
        assert isinstance(service.book(MONDAY, "10:00", "1", "Rui"), Accepted)

    def test_upcoming_is_ordered(self):
        """Test upcoming appointments come back by date then time."""
        service, _ = _build_service()
        service.book(MONDAY.add(days=1), "09:00", "1", "C")
        service.book(MONDAY, "16:00", "1", "B")
        service.book(MONDAY, "09:00", "1", "A")

        names = [appt.client_name for appt in service.upcoming(MONDAY)]

        assert names == ["A", "B", "C"]
        assert [appt.client_name for appt in service.upcoming(MONDAY.add(days=1))] == ["C"]


class TestInMemoryStore:
    """Tests for the store's own bookkeeping."""

    def test_unknown_tenant(self):
        with pytest.raises(KeyError, match="Unknown tenant"):
            InMemoryBookingStore().get_policy("nobody")

    def test_blackout_rule_lifecycle(self):
        store = InMemoryBookingStore()
        store.register_tenant(TENANT, policy=POLICY)
        rule = BlackoutRule("Holiday", MONDAY, 540, 1200)

        store.add_blackout_rule(TENANT, rule)
        assert store.get_blackout_rules(TENANT) == [rule]

        assert store.delete_blackout_rule(TENANT, rule.rule_id)
        assert store.get_blackout_rules(TENANT) == []
        assert not store.delete_blackout_rule(TENANT, rule.rule_id)

    def test_register_rejects_overlapping_seeds(self):
        seeds = [
            Appointment(MONDAY, 780, 840, "3", 60, "Ana"),
            Appointment(MONDAY, 810, 840, "1", 30, "Rui"),
        ]

        with pytest.raises(ValueError, match="overlaps"):
            InMemoryBookingStore().register_tenant(TENANT, policy=POLICY, appointments=seeds)

    def test_save_policy(self):
        store = InMemoryBookingStore()
        store.register_tenant(TENANT, policy=POLICY)
        updated = WorkingHoursPolicy(start_time=600, end_time=1080)

        store.save_policy(TENANT, updated)

        assert store.get_policy(TENANT) == updated

    def test_services_sorted_by_name(self):
        store = InMemoryBookingStore()
        store.register_tenant(TENANT, policy=POLICY, services=reversed(SERVICES))

        assert [service.name for service in store.get_services(TENANT)] == ["Haircut", "Haircut & Beard"]
