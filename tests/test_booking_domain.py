"""
Тесты агрегата Booking и его машины состояний.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from tour_booking.booking.domain import (
    Booking,
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingPolicy,
    BookingSubmitted,
    GuideAttached,
    ItemDraft,
)
from tour_booking.shared_kernel import (
    BookingStatus,
    BusinessRuleValidationException,
    ConflictException,
    DateRange,
    ItemType,
    Money,
    ProviderStatus,
    ValidationException,
)


def usd(amount: str) -> Money:
    return Money(amount=Decimal(amount))


@pytest.fixture
def reservation_id():
    return uuid4()


@pytest.fixture
def booking(reservation_id) -> Booking:
    """Бронирование с отелем, активностью и позицией гида."""
    return Booking.create(
        tourist_id=uuid4(),
        tourist_full_name="Иван Петров",
        destination_id=uuid4(),
        period=DateRange(start_date=date(2024, 12, 20), end_date=date(2024, 12, 22)),
        total_cost=usd("860.00"),
        drafts=[
            ItemDraft(item_type=ItemType.HOTEL, reference_id=uuid4(), cost=usd("360.00")),
            ItemDraft(
                item_type=ItemType.ACTIVITY,
                reference_id=uuid4(),
                cost=usd("500.00"),
                item_details={"reservation_id": str(reservation_id), "participants": 2},
            ),
            ItemDraft(item_type=ItemType.TOUR_GUIDE, cost=usd("0")),
            ItemDraft(
                item_type=ItemType.PLACEHOLDER,
                cost=usd("0"),
                item_details={"note": "Без: transport"},
            ),
        ],
        include_hotel=True,
        include_activities=True,
    )


def _item(booking: Booking, item_type: ItemType):
    return next(item for item in booking.items if item.item_type == item_type)


class TestBookingCreation:
    def test_created_pending_with_event(self, booking, reservation_id):
        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert all(item.booking_id == booking.id for item in booking.items)
        assert booking.reservation_ids == [reservation_id]

        events = booking.pull_domain_events()
        assert len(events) == 1
        assert isinstance(events[0], BookingSubmitted)
        assert booking.domain_events == []

    def test_requires_items(self):
        with pytest.raises(BusinessRuleValidationException):
            Booking.create(
                tourist_id=uuid4(),
                tourist_full_name="Иван",
                destination_id=None,
                period=DateRange(start_date=date(2024, 12, 20), end_date=date(2024, 12, 21)),
                total_cost=usd("0"),
                drafts=[],
            )

    def test_single_placeholder(self):
        placeholder = ItemDraft(item_type=ItemType.PLACEHOLDER, cost=usd("0"))
        with pytest.raises(BusinessRuleValidationException):
            Booking.create(
                tourist_id=uuid4(),
                tourist_full_name="Иван",
                destination_id=None,
                period=DateRange(start_date=date(2024, 12, 20), end_date=date(2024, 12, 21)),
                total_cost=usd("0"),
                drafts=[placeholder, placeholder],
            )


class TestBookingStateMachine:
    """Тесты переходов статусов бронирования."""

    def test_confirm_payment_confirms_activities(self, booking):
        booking.confirm_payment()

        assert booking.status == BookingStatus.CONFIRMED
        assert _item(booking, ItemType.ACTIVITY).provider_status == ProviderStatus.CONFIRMED
        assert _item(booking, ItemType.HOTEL).provider_status == ProviderStatus.PENDING
        assert isinstance(booking.domain_events[-1], BookingConfirmed)

    def test_confirm_payment_twice_fails(self, booking):
        booking.confirm_payment()
        with pytest.raises(BusinessRuleValidationException):
            booking.confirm_payment()

    def test_attach_guide_requires_payment(self, booking):
        with pytest.raises(BusinessRuleValidationException):
            booking.attach_guide(uuid4(), "Amani")

    def test_attach_and_detach_guide(self, booking):
        guide_id = uuid4()
        booking.confirm_payment()

        item = booking.attach_guide(guide_id, "Amani Mushi")

        assert booking.status == BookingStatus.GUIDE_ASSIGNED
        assert booking.guide_id == guide_id
        assert item.item_details["guide_name"] == "Amani Mushi"
        assert isinstance(booking.domain_events[-1], GuideAttached)

        with pytest.raises(ConflictException):
            booking.attach_guide(uuid4(), "Другой гид")

        booking.detach_guide(guide_id)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.guide_id is None

    def test_detach_wrong_guide(self, booking):
        booking.confirm_payment()
        booking.attach_guide(uuid4(), "Amani")
        with pytest.raises(ConflictException):
            booking.detach_guide(uuid4())

    def test_completes_when_all_items_confirmed(self, booking):
        booking.confirm_payment()
        hotel = _item(booking, ItemType.HOTEL)
        guide_item = _item(booking, ItemType.TOUR_GUIDE)

        booking.confirm_item(hotel.id, {"room_number": "12", "room_type": "double"})
        assert booking.complete_if_fulfilled() is False

        with pytest.raises(BusinessRuleValidationException):
            booking.confirm_item(guide_item.id, {})

        booking.attach_guide(uuid4(), "Amani")
        booking.confirm_item(guide_item.id, {"accepted": True})
        assert booking.complete_if_fulfilled() is True
        assert booking.status == BookingStatus.COMPLETED
        assert isinstance(booking.domain_events[-1], BookingCompleted)
        assert hotel.item_details["room_number"] == "12"

    def test_confirm_item_twice_conflicts(self, booking):
        booking.confirm_payment()
        hotel = _item(booking, ItemType.HOTEL)
        booking.confirm_item(hotel.id, {"room_number": "12", "room_type": "double"})
        with pytest.raises(ConflictException):
            booking.confirm_item(hotel.id, {"room_number": "14", "room_type": "double"})

    def test_confirmation_requires_provider_details(self, booking):
        booking.confirm_payment()
        hotel = _item(booking, ItemType.HOTEL)

        with pytest.raises(ValidationException) as exc_info:
            booking.confirm_item(hotel.id, {"room_number": "12", "room_type": "  "})

        assert exc_info.value.field == "details.room_type"
        assert hotel.provider_status == ProviderStatus.PENDING

    def test_activity_item_is_not_provider_confirmed(self, booking):
        booking.confirm_payment()
        with pytest.raises(BusinessRuleValidationException):
            booking.confirm_item(_item(booking, ItemType.ACTIVITY).id, {})

    def test_unknown_item(self, booking):
        booking.confirm_payment()
        with pytest.raises(ValidationException):
            booking.confirm_item(uuid4(), {})

    def test_cancel_is_idempotent(self, booking, reservation_id):
        assert booking.cancel("payment_failed") == [reservation_id]
        assert booking.cancel("again") == []
        cancelled = [e for e in booking.domain_events if isinstance(e, BookingCancelled)]
        assert len(cancelled) == 1

    def test_cancel_paid_booking_carries_guide(self, booking):
        guide_id = uuid4()
        booking.confirm_payment()
        booking.attach_guide(guide_id, "Amani")

        booking.cancel("tourist_request")

        event = booking.domain_events[-1]
        assert isinstance(event, BookingCancelled)
        assert event.guide_id == guide_id
        assert booking.status == BookingStatus.CANCELLED

    def test_completed_booking_cannot_be_cancelled(self, booking):
        booking.status = BookingStatus.COMPLETED
        with pytest.raises(BusinessRuleValidationException):
            booking.cancel()

    def test_version_grows(self, booking):
        version = booking.version
        booking.confirm_payment()
        assert booking.version == version + 1


class TestBookingPolicy:
    def test_past_start_date(self):
        with pytest.raises(ValidationException) as exc_info:
            BookingPolicy().validate_period(date(2024, 11, 1), date(2024, 11, 3), date(2024, 12, 1))
        assert exc_info.value.field == "start_date"

    def test_past_check_can_be_disabled(self):
        policy = BookingPolicy(reject_past_start_dates=False)
        period = policy.validate_period(date(2024, 11, 1), date(2024, 11, 3), date(2024, 12, 1))
        assert period.days == 2

    def test_max_duration(self):
        with pytest.raises(ValidationException, match="30"):
            BookingPolicy().validate_period(date(2024, 12, 2), date(2025, 1, 10), date(2024, 12, 1))

    def test_end_before_start(self):
        with pytest.raises(ValidationException) as exc_info:
            BookingPolicy().validate_period(date(2024, 12, 5), date(2024, 12, 5), date(2024, 12, 1))
        assert exc_info.value.field == "end_date"

    def test_tourist_name(self):
        assert BookingPolicy().validate_tourist_name("  Ян ") == "Ян"
        with pytest.raises(ValidationException):
            BookingPolicy().validate_tourist_name("Я")
