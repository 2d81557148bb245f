"""
Тесты учета доступности слотов.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from uuid import uuid4

import pytest

from tour_booking.availability.application import AvailabilityLedger, ReservationBatch
from tour_booking.availability.domain import (
    AvailabilityRecord,
    Denied,
    ReservationToken,
    SlotKey,
)
from tour_booking.availability.infrastructure import (
    InMemoryAvailabilityStore,
    JsonFileAvailabilityStore,
)
from tour_booking.catalog.infrastructure import SAFARI_TOUR_ID, SPICE_TOUR_ID, InMemoryCatalog
from tour_booking.shared_kernel import (
    CapacityException,
    CatalogLookupException,
    ValidationException,
)

SAFARI_DAY = date(2024, 12, 21)


@pytest.fixture
def sample_catalog() -> InMemoryCatalog:
    catalog = InMemoryCatalog()
    catalog.load_sample_data()
    return catalog


@pytest.fixture
def store() -> InMemoryAvailabilityStore:
    return InMemoryAvailabilityStore()


@pytest.fixture
def ledger(store, sample_catalog) -> AvailabilityLedger:
    return AvailabilityLedger(store, sample_catalog)


class TestAvailabilityRecord:
    def test_counter_must_match_reservations(self):
        key = SlotKey(activity_id=uuid4(), date=SAFARI_DAY, slot_id=0)
        with pytest.raises(ValueError):
            AvailabilityRecord(key=key, booked_participants=3, reservations={})

    def test_hold_and_drop(self):
        key = SlotKey(activity_id=uuid4(), date=SAFARI_DAY, slot_id=0)
        record = AvailabilityRecord(key=key)
        token = ReservationToken(key=key, participants=3)

        record.hold(token)
        assert record.booked_participants == 3

        assert record.drop(token.id) is True
        assert record.drop(token.id) is False
        assert record.booked_participants == 0


class TestAvailabilityLedger:
    """Тесты для AvailabilityLedger."""

    def test_serengeti_morning_slot_scenario(self, ledger):
        """8 мест: 5 удается, 4 отклоняется, 3 удается, мест не остается."""
        first = ledger.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 5)
        assert isinstance(first, ReservationToken)

        second = ledger.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 4)
        assert isinstance(second, Denied)
        assert second.available == 3
        assert second.slot_label == "06:00-12:00"

        third = ledger.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 3)
        assert isinstance(third, ReservationToken)

        availability = ledger.query(SAFARI_TOUR_ID, SAFARI_DAY, 0)
        assert availability.available_spots == 0
        assert availability.booked_spots == 8
        assert availability.total_spots == 8
        assert availability.available is False

    def test_release_is_idempotent(self, ledger):
        token = ledger.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 5)

        assert ledger.release(token) is True
        assert ledger.release(token) is False
        assert ledger.query(SAFARI_TOUR_ID, SAFARI_DAY, 0).available_spots == 8

    def test_release_unknown_reservation(self, ledger):
        assert ledger.release_by_id(uuid4()) is False

    def test_slots_are_independent(self, ledger):
        ledger.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 8)
        assert ledger.query(SAFARI_TOUR_ID, SAFARI_DAY, 1).available_spots == 8

    def test_zero_participants_rejected(self, ledger):
        with pytest.raises(ValidationException) as exc_info:
            ledger.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 0)
        assert exc_info.value.field == "participants"

    def test_date_not_offered(self, ledger):
        with pytest.raises(ValidationException, match="2024-12-30") as exc_info:
            ledger.reserve(SAFARI_TOUR_ID, date(2024, 12, 30), 0, 1)
        assert exc_info.value.field == "date"

    def test_slot_disabled_on_date(self, ledger):
        with pytest.raises(ValidationException) as exc_info:
            ledger.reserve(SAFARI_TOUR_ID, date(2024, 12, 23), 0, 1)
        assert exc_info.value.field == "slot_id"

    def test_unknown_activity(self, ledger):
        with pytest.raises(CatalogLookupException):
            ledger.reserve(uuid4(), SAFARI_DAY, 0, 1)

    def test_list_slots(self, ledger):
        ledger.reserve(SAFARI_TOUR_ID, date(2024, 12, 23), 1, 2)
        slots = ledger.list_slots(SAFARI_TOUR_ID, date(2024, 12, 23))
        assert [(s.slot_id, s.available_spots) for s in slots] == [(1, 6)]

    def test_concurrent_reservations_never_exceed_capacity(self, ledger):
        """Параллельные запросы вместе не могут превысить вместимость."""
        barrier = threading.Barrier(12)

        def attempt(_):
            barrier.wait()
            return ledger.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 1)

        with ThreadPoolExecutor(max_workers=12) as pool:
            results = list(pool.map(attempt, range(12)))

        granted = [r for r in results if isinstance(r, ReservationToken)]
        denied = [r for r in results if isinstance(r, Denied)]
        assert len(granted) == 8
        assert len(denied) == 4
        assert ledger.query(SAFARI_TOUR_ID, SAFARI_DAY, 0).booked_spots == 8


class TestReservationBatch:
    def test_denial_rolls_back_everything(self, ledger):
        with pytest.raises(CapacityException) as exc_info:
            with ReservationBatch(ledger) as batch:
                batch.reserve(SPICE_TOUR_ID, SAFARI_DAY, 0, 4)
                batch.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 9)

        error = exc_info.value
        assert error.activity_id == SAFARI_TOUR_ID
        assert error.date == SAFARI_DAY
        assert error.slot_id == 0
        assert "06:00-12:00" in str(error)
        assert ledger.query(SPICE_TOUR_ID, SAFARI_DAY, 0).booked_spots == 0

    def test_any_exception_rolls_back(self, ledger):
        with pytest.raises(RuntimeError):
            with ReservationBatch(ledger) as batch:
                batch.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 1, 2)
                raise RuntimeError("сбой после резервирования")

        assert ledger.query(SAFARI_TOUR_ID, SAFARI_DAY, 1).booked_spots == 0

    def test_commit_keeps_reservations(self, ledger):
        with ReservationBatch(ledger) as batch:
            batch.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 1, 2)

        assert len(batch.tokens) == 1
        batch.rollback()
        assert ledger.query(SAFARI_TOUR_ID, SAFARI_DAY, 1).booked_spots == 2


class TestJsonFileAvailabilityStore:
    def test_reservations_survive_restart(self, tmp_path, sample_catalog):
        path = str(tmp_path / "availability.json")
        ledger = AvailabilityLedger(JsonFileAvailabilityStore(path), sample_catalog)
        token = ledger.reserve(SAFARI_TOUR_ID, SAFARI_DAY, 0, 5)

        restarted = AvailabilityLedger(JsonFileAvailabilityStore(path), sample_catalog)
        assert restarted.query(SAFARI_TOUR_ID, SAFARI_DAY, 0).available_spots == 3

        assert restarted.release_by_id(token.id) is True
        assert restarted.query(SAFARI_TOUR_ID, SAFARI_DAY, 0).available_spots == 8
