"""
Доменная модель контекста бронирования.

Содержит агрегат Booking с позициями (BookingItem), его машину состояний,
доменные события и политику проверки периода поездки.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from ..shared_kernel import (
    BookingStatus,
    BusinessRuleValidationException,
    ConflictException,
    DateRange,
    DomainEvent,
    EntityId,
    ItemType,
    Money,
    ProviderStatus,
    ValidationException,
    generate_id,
    now,
)

# Позиции, которые подтверждает поставщик (отель, агент, гид)
PROVIDER_ITEM_TYPES = (ItemType.HOTEL, ItemType.TRANSPORT, ItemType.TOUR_GUIDE)
PAID_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.GUIDE_ASSIGNED)
# Обязательные сведения при подтверждении позиции поставщиком
REQUIRED_ITEM_DETAILS: Dict[ItemType, tuple] = {
    ItemType.HOTEL: ("room_number", "room_type"),
    ItemType.TRANSPORT: ("ticket_pdf_url",),
}


class ItemDraft(BaseModel):
    """Заготовка позиции, из которой агрегат создает BookingItem."""

    item_type: ItemType
    reference_id: Optional[EntityId] = None
    cost: Money
    item_details: Dict[str, Any] = Field(default_factory=dict)


class BookingItem(BaseModel):
    """Позиция бронирования: транспорт, отель, активность, гид или заглушка."""

    id: EntityId = Field(default_factory=generate_id)
    booking_id: EntityId
    item_type: ItemType
    reference_id: Optional[EntityId] = None
    cost: Money
    item_details: Dict[str, Any] = Field(default_factory=dict)
    provider_status: ProviderStatus = ProviderStatus.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self.provider_status == ProviderStatus.CONFIRMED


class BookingSubmitted(DomainEvent):
    """Событие создания бронирования."""

    booking_id: EntityId
    tourist_id: EntityId
    total_cost: Money
    reservation_ids: List[EntityId] = Field(default_factory=list)


class BookingConfirmed(DomainEvent):
    """Событие подтверждения оплаты."""

    booking_id: EntityId


class BookingCancelled(DomainEvent):
    """Событие отмены бронирования."""

    booking_id: EntityId
    reason: Optional[str] = None
    reservation_ids: List[EntityId] = Field(default_factory=list)
    guide_id: Optional[EntityId] = None


class GuideAttached(DomainEvent):
    """Гид закреплен за бронированием."""

    booking_id: EntityId
    guide_id: EntityId
    item_id: EntityId


class GuideDetached(DomainEvent):
    """Гид снят с бронирования."""

    booking_id: EntityId
    guide_id: EntityId


class BookingItemConfirmed(DomainEvent):
    """Поставщик подтвердил позицию."""

    booking_id: EntityId
    item_id: EntityId
    item_type: ItemType


class BookingCompleted(DomainEvent):
    """Все позиции подтверждены, бронирование завершено."""

    booking_id: EntityId


class Booking(BaseModel):
    """Бронирование поездки (корень агрегата)."""

    id: EntityId = Field(default_factory=generate_id)
    tourist_id: EntityId
    tourist_full_name: str
    destination_id: Optional[EntityId] = None
    start_date: date
    end_date: date
    status: BookingStatus = BookingStatus.PENDING_PAYMENT
    total_cost: Money
    include_transport: bool = False
    include_hotel: bool = False
    include_activities: bool = False
    items: List[BookingItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)
    version: int = 0
    _domain_events: List[DomainEvent] = PrivateAttr(default_factory=list)

    @model_validator(mode="after")
    def end_after_start(self) -> "Booking":
        if self.end_date <= self.start_date:
            raise ValueError("Дата окончания должна быть позже даты начала")
        return self

    @property
    def domain_events(self) -> List[DomainEvent]:
        """Возвращает список доменных событий."""
        return list(self._domain_events)

    def pull_domain_events(self) -> List[DomainEvent]:
        events = list(self._domain_events)
        self._domain_events.clear()
        return events

    def clear_events(self) -> None:
        """Очищает список доменных событий."""
        self._domain_events.clear()

    def _record(self, event: DomainEvent) -> None:
        self._domain_events.append(event)

    def _touch(self, at: Optional[datetime] = None) -> None:
        self.updated_at = at or now()
        self.version += 1

    @property
    def period(self) -> DateRange:
        return DateRange(start_date=self.start_date, end_date=self.end_date)

    @property
    def activity_ids(self) -> List[EntityId]:
        return [
            item.reference_id
            for item in self.items
            if item.item_type == ItemType.ACTIVITY and item.reference_id is not None
        ]

    @property
    def reservation_ids(self) -> List[EntityId]:
        return [
            EntityId(str(item.item_details["reservation_id"]))
            for item in self.items
            if item.item_type == ItemType.ACTIVITY and item.item_details.get("reservation_id")
        ]

    @property
    def tour_guide_item(self) -> Optional[BookingItem]:
        for item in self.items:
            if item.item_type == ItemType.TOUR_GUIDE:
                return item
        return None

    @property
    def guide_id(self) -> Optional[EntityId]:
        item = self.tour_guide_item
        if item is None or not item.item_details.get("guide_id"):
            return None
        return EntityId(str(item.item_details["guide_id"]))

    def get_item(self, item_id: EntityId) -> BookingItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise ValidationException(
            f"Позиция {item_id} не принадлежит бронированию {self.id}", field="item_id"
        )

    def is_payment_overdue(self, at: datetime, grace: timedelta) -> bool:
        return self.status == BookingStatus.PENDING_PAYMENT and self.created_at + grace <= at

    @classmethod
    def create(
        cls,
        tourist_id: EntityId,
        tourist_full_name: str,
        destination_id: Optional[EntityId],
        period: DateRange,
        total_cost: Money,
        drafts: List[ItemDraft],
        include_transport: bool = False,
        include_hotel: bool = False,
        include_activities: bool = False,
        created_at: Optional[datetime] = None,
    ) -> "Booking":
        """Создает новое бронирование в статусе pending_payment."""
        if not drafts:
            raise BusinessRuleValidationException(
                "Бронирование должно содержать хотя бы одну позицию"
            )
        placeholders = [d for d in drafts if d.item_type == ItemType.PLACEHOLDER]
        if len(placeholders) > 1:
            raise BusinessRuleValidationException(
                "Бронирование может содержать только одну позицию-заглушку"
            )

        created_at = created_at or now()
        booking = cls(
            tourist_id=tourist_id,
            tourist_full_name=tourist_full_name,
            destination_id=destination_id,
            start_date=period.start_date,
            end_date=period.end_date,
            total_cost=total_cost,
            include_transport=include_transport,
            include_hotel=include_hotel,
            include_activities=include_activities,
            created_at=created_at,
            updated_at=created_at,
        )
        booking.items = [
            BookingItem(
                booking_id=booking.id,
                item_type=draft.item_type,
                reference_id=draft.reference_id,
                cost=draft.cost,
                item_details=dict(draft.item_details),
            )
            for draft in drafts
        ]
        booking.version = 1
        booking._record(
            BookingSubmitted(
                booking_id=booking.id,
                tourist_id=tourist_id,
                total_cost=total_cost,
                reservation_ids=booking.reservation_ids,
            )
        )
        return booking

    def confirm_payment(self, at: Optional[datetime] = None) -> None:
        """Оплата подтверждена: pending_payment -> confirmed."""
        if self.status != BookingStatus.PENDING_PAYMENT:
            raise BusinessRuleValidationException(
                f"Невозможно подтвердить оплату бронирования в статусе {self.status.value}"
            )
        self.status = BookingStatus.CONFIRMED
        # Места активностей уже удержаны учетом доступности
        for item in self.items:
            if item.item_type == ItemType.ACTIVITY:
                item.provider_status = ProviderStatus.CONFIRMED
        self._touch(at)
        self._record(BookingConfirmed(booking_id=self.id))

    def attach_guide(
        self, guide_id: EntityId, guide_name: Optional[str] = None, at: Optional[datetime] = None
    ) -> BookingItem:
        """Закрепляет гида: confirmed -> guide_assigned."""
        item = self.tour_guide_item
        if item is None:
            raise BusinessRuleValidationException(
                f"В бронировании {self.id} нет активностей с гидом", field="booking_id"
            )
        if self.guide_id is not None:
            raise ConflictException(
                f"За бронированием {self.id} уже закреплен гид {self.guide_id}",
                resource=f"booking:{self.id}",
            )
        if self.status != BookingStatus.CONFIRMED:
            raise BusinessRuleValidationException(
                f"Гида можно назначить только оплаченному бронированию, "
                f"текущий статус {self.status.value}",
                field="booking_id",
            )

        at = at or now()
        item.reference_id = guide_id
        item.item_details = {
            "guide_id": str(guide_id),
            "guide_name": guide_name,
            "assigned_at": at.isoformat(),
        }
        item.provider_status = ProviderStatus.PENDING
        self.status = BookingStatus.GUIDE_ASSIGNED
        self._touch(at)
        self._record(GuideAttached(booking_id=self.id, guide_id=guide_id, item_id=item.id))
        return item

    def detach_guide(self, guide_id: EntityId, at: Optional[datetime] = None) -> None:
        """Снимает гида: guide_assigned -> confirmed."""
        if self.status != BookingStatus.GUIDE_ASSIGNED or self.guide_id != guide_id:
            raise ConflictException(
                f"Гид {guide_id} не закреплен за бронированием {self.id}",
                resource=f"guide:{guide_id}",
            )
        item = self.tour_guide_item
        item.reference_id = None
        item.item_details = {}
        item.provider_status = ProviderStatus.PENDING
        self.status = BookingStatus.CONFIRMED
        self._touch(at)
        self._record(GuideDetached(booking_id=self.id, guide_id=guide_id))

    def confirm_item(
        self, item_id: EntityId, details: Dict[str, Any], at: Optional[datetime] = None
    ) -> BookingItem:
        """Поставщик подтверждает свою позицию."""
        if self.status not in PAID_STATUSES:
            raise BusinessRuleValidationException(
                f"Позиции можно подтверждать только у оплаченного бронирования, "
                f"текущий статус {self.status.value}",
                field="item_id",
            )
        item = self.get_item(item_id)
        if item.item_type not in PROVIDER_ITEM_TYPES:
            raise BusinessRuleValidationException(
                f"Позиция типа {item.item_type.value} не подтверждается поставщиком",
                field="item_id",
            )
        if item.is_confirmed:
            raise ConflictException(
                f"Позиция {item_id} уже подтверждена", resource=f"booking_item:{item_id}"
            )
        if item.item_type == ItemType.TOUR_GUIDE and self.guide_id is None:
            raise BusinessRuleValidationException(
                "Нельзя подтвердить позицию гида до назначения гида", field="item_id"
            )
        for key in REQUIRED_ITEM_DETAILS.get(item.item_type, ()):
            if not str(details.get(key) or "").strip():
                raise ValidationException(
                    f"Для подтверждения позиции {item.item_type.value} нужно указать {key}",
                    field=f"details.{key}",
                )

        at = at or now()
        item.item_details = {
            **item.item_details,
            **details,
            "confirmed_at": at.isoformat(),
        }
        item.provider_status = ProviderStatus.CONFIRMED
        self._touch(at)
        self._record(
            BookingItemConfirmed(booking_id=self.id, item_id=item.id, item_type=item.item_type)
        )
        return item

    def complete_if_fulfilled(self, at: Optional[datetime] = None) -> bool:
        """Переводит в completed, если все позиции (кроме заглушки) подтверждены."""
        if self.status not in PAID_STATUSES:
            return False
        pending = [
            item
            for item in self.items
            if item.item_type != ItemType.PLACEHOLDER and not item.is_confirmed
        ]
        if pending:
            return False
        self.status = BookingStatus.COMPLETED
        self._touch(at)
        self._record(BookingCompleted(booking_id=self.id))
        return True

    def cancel(self, reason: Optional[str] = None, at: Optional[datetime] = None) -> List[EntityId]:
        """
        Отменяет бронирование.

        Возвращает идентификаторы резервирований, которые нужно освободить.
        Повторная отмена ничего не делает и возвращает пустой список.
        """
        if self.status == BookingStatus.CANCELLED:
            return []
        if self.status == BookingStatus.COMPLETED:
            raise BusinessRuleValidationException(
                "Невозможно отменить завершенное бронирование", field="booking_id"
            )

        guide_id = self.guide_id
        reservation_ids = self.reservation_ids
        self.status = BookingStatus.CANCELLED
        self._touch(at)
        self._record(
            BookingCancelled(
                booking_id=self.id,
                reason=reason,
                reservation_ids=reservation_ids,
                guide_id=guide_id,
            )
        )
        return reservation_ids


class BookingPolicy:
    """Политики и бизнес-правила для бронирований."""

    MAX_BOOKING_DAYS = 30
    MIN_NAME_LENGTH = 2

    def __init__(self, max_booking_days: int = MAX_BOOKING_DAYS, reject_past_start_dates: bool = True):
        self.max_booking_days = max_booking_days
        self.reject_past_start_dates = reject_past_start_dates

    def validate_period(self, start_date: date, end_date: date, today: date) -> DateRange:
        """Проверяет, что период поездки соответствует политикам."""
        if end_date <= start_date:
            raise ValidationException(
                "Дата окончания должна быть позже даты начала", field="end_date"
            )
        if self.reject_past_start_dates and start_date < today:
            raise ValidationException(
                f"Дата начала {start_date.isoformat()} уже прошла", field="start_date"
            )

        period = DateRange(start_date=start_date, end_date=end_date)
        if period.days > self.max_booking_days:
            raise ValidationException(
                f"Длительность бронирования не может превышать {self.max_booking_days} дней",
                field="end_date",
            )
        return period

    def validate_tourist_name(self, full_name: str) -> str:
        name = (full_name or "").strip()
        if len(name) < self.MIN_NAME_LENGTH:
            raise ValidationException(
                f"Имя туриста должно содержать не менее {self.MIN_NAME_LENGTH} символов",
                field="tourist_full_name",
            )
        return name
