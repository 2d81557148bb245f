"""
Тесты каталога: расписание активностей и поиск по идентификаторам.
"""

from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from tour_booking.catalog.domain import Activity, ActivityDate, TimeSlot
from tour_booking.catalog.infrastructure import (
    KILIMANJARO_HIKE_ID,
    SAFARI_TOUR_ID,
    SERENGETI_ID,
    InMemoryCatalog,
)
from tour_booking.shared_kernel import CatalogLookupException, Money, ValidationException


def _activity(**overrides) -> Activity:
    data = dict(
        destination_id=uuid4(),
        name="Тестовая активность",
        price=Money(amount=Decimal("10")),
        time_slots=[
            TimeSlot(slot_id=1, start_time=time(14), end_time=time(18), max_participants=4),
            TimeSlot(slot_id=0, start_time=time(6), end_time=time(12), max_participants=8),
        ],
        available_dates=[
            ActivityDate(date=date(2024, 12, 20)),
            ActivityDate(date=date(2024, 12, 21), available_slots=[1]),
        ],
    )
    data.update(overrides)
    return Activity(**data)


class TestActivitySchedule:
    def test_slots_are_sorted(self):
        activity = _activity()
        assert [s.slot_id for s in activity.time_slots] == [0, 1]
        assert activity.time_slots[0].label == "06:00-12:00"

    def test_date_without_restriction_offers_all_slots(self):
        activity = _activity()
        assert [s.slot_id for s in activity.slots_on(date(2024, 12, 20))] == [0, 1]

    def test_date_with_restriction(self):
        activity = _activity()
        assert activity.is_offered(date(2024, 12, 21), 1)
        assert not activity.is_offered(date(2024, 12, 21), 0)

    def test_date_not_in_schedule(self):
        activity = _activity()
        assert not activity.runs_on(date(2024, 12, 22))
        assert activity.slots_on(date(2024, 12, 22)) == []

    def test_unknown_slot_in_schedule_rejected(self):
        with pytest.raises(ValidationError):
            _activity(available_dates=[ActivityDate(date=date(2024, 12, 20), available_slots=[5])])

    def test_duplicate_slot_ids_rejected(self):
        slot = TimeSlot(slot_id=0, start_time=time(6), end_time=time(12), max_participants=8)
        with pytest.raises(ValidationError):
            _activity(time_slots=[slot, slot])

    def test_activity_needs_a_slot(self):
        with pytest.raises(ValidationError):
            _activity(time_slots=[])

    def test_slot_end_after_start(self):
        with pytest.raises(ValidationError):
            TimeSlot(slot_id=0, start_time=time(12), end_time=time(6), max_participants=8)


class TestInMemoryCatalog:
    @pytest.fixture
    def catalog(self) -> InMemoryCatalog:
        catalog = InMemoryCatalog()
        catalog.load_sample_data()
        return catalog

    def test_sample_safari(self, catalog):
        safari = catalog.get_activity(SAFARI_TOUR_ID)
        assert safari.destination_id == SERENGETI_ID
        assert safari.get_slot(0).max_participants == 8
        assert not safari.is_offered(date(2024, 12, 23), 0)

    def test_sample_hike_has_day_without_slots(self, catalog):
        hike = catalog.get_activity(KILIMANJARO_HIKE_ID)
        assert hike.runs_on(date(2024, 12, 22))
        assert hike.slots_on(date(2024, 12, 22)) == []

    def test_list_activities_by_destination(self, catalog):
        activities = catalog.list_activities(SERENGETI_ID)
        assert [a.id for a in activities] == [SAFARI_TOUR_ID]

    def test_unknown_ids_raise_lookup_error(self, catalog):
        unknown = uuid4()
        with pytest.raises(CatalogLookupException) as exc_info:
            catalog.get_hotel(unknown)
        assert exc_info.value.field == "hotel_id"
        assert isinstance(exc_info.value, ValidationException)

        with pytest.raises(CatalogLookupException):
            catalog.get_destination(unknown)
        with pytest.raises(CatalogLookupException):
            catalog.get_transport_route(unknown)
        with pytest.raises(CatalogLookupException):
            catalog.get_activity(unknown)

    def test_activity_requires_known_destination(self):
        with pytest.raises(CatalogLookupException):
            InMemoryCatalog().add_activity(_activity())
