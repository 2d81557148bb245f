"""
Прикладной слой бронирований.

BookingComposer собирает бронирование из запроса туриста: проверяет запрос,
резервирует места в слотах активностей, рассчитывает стоимость и сохраняет
агрегат. Все шаги выполняются по принципу "все или ничего". Он же обрабатывает
результаты оплаты, отмену, подтверждение позиций поставщиками и
закрепление гида.
"""

from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..availability.application import AvailabilityLedger, ReservationBatch
from ..catalog.interfaces import ICatalog
from ..config import Settings, get_settings
from ..shared_kernel import (
    BookingStatus,
    ConflictException,
    ConsoleLogger,
    DateRange,
    DomainEvent,
    DomainException,
    EntityId,
    IEventBus,
    ILogger,
    ItemType,
    KeyedLock,
    Money,
    ProviderStatus,
    ValidationException,
    now,
)
from . import interfaces as ports
from .domain import (
    PAID_STATUSES,
    PROVIDER_ITEM_TYPES,
    Booking,
    BookingItem,
    BookingPolicy,
    ItemDraft,
)
from .pricing import DESTINATION_LINE, CostBreakdown, CostLine, PricingCalculator


# DTO
class ActivitySelection(BaseModel):
    """Выбранная активность: дата, слот и количество участников."""

    activity_id: EntityId
    date: date
    slot_id: int = Field(..., ge=0)
    participants: int = Field(default=1, gt=0)


class SubmitBookingRequest(BaseModel):
    """Запрос туриста на создание бронирования."""

    tourist_id: EntityId
    tourist_full_name: str
    destination_id: Optional[EntityId] = None
    start_date: date
    end_date: date
    include_transport: bool = False
    transport_id: Optional[EntityId] = None
    include_hotel: bool = False
    hotel_id: Optional[EntityId] = None
    include_activities: bool = False
    activities: List[ActivitySelection] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    booking_id: EntityId
    status: BookingStatus
    total_cost: Money
    breakdown: List[CostLine]


class BookingItemDTO(BaseModel):
    id: EntityId
    item_type: ItemType
    reference_id: Optional[EntityId] = None
    cost: Money
    item_details: Dict[str, Any]
    provider_status: ProviderStatus

    @classmethod
    def from_domain(cls, item: BookingItem) -> "BookingItemDTO":
        return cls(
            id=item.id,
            item_type=item.item_type,
            reference_id=item.reference_id,
            cost=item.cost,
            item_details=dict(item.item_details),
            provider_status=item.provider_status,
        )


class BookingDTO(BaseModel):
    """Представление бронирования для внешних слоев."""

    id: EntityId
    tourist_id: EntityId
    tourist_full_name: str
    destination_id: Optional[EntityId] = None
    start_date: date
    end_date: date
    status: BookingStatus
    total_cost: Money
    guide_id: Optional[EntityId] = None
    items: List[BookingItemDTO]
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingDTO":
        return cls(
            id=booking.id,
            tourist_id=booking.tourist_id,
            tourist_full_name=booking.tourist_full_name,
            destination_id=booking.destination_id,
            start_date=booking.start_date,
            end_date=booking.end_date,
            status=booking.status,
            total_cost=booking.total_cost,
            guide_id=booking.guide_id,
            items=[BookingItemDTO.from_domain(item) for item in booking.items],
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            version=booking.version,
        )


class ProviderWorkItem(BaseModel):
    """Позиция в списке задач поставщика вместе с данными поездки."""

    booking_id: EntityId
    booking_status: BookingStatus
    tourist_id: EntityId
    tourist_full_name: str
    start_date: date
    end_date: date
    item: BookingItemDTO


def parse_request(payload: Union[SubmitBookingRequest, Mapping[str, Any]]) -> SubmitBookingRequest:
    """Преобразует входные данные в SubmitBookingRequest."""
    if isinstance(payload, SubmitBookingRequest):
        return payload
    try:
        return SubmitBookingRequest.model_validate(payload)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        raise ValidationException(f"Некорректный запрос: {error['msg']}", field=field) from e


class BookingComposer:
    """Сервис приложения для создания бронирований и управления ими."""

    def __init__(
        self,
        catalog: ICatalog,
        ledger: AvailabilityLedger,
        bookings: ports.IBookingRepository,
        event_bus: IEventBus,
        settings: Optional[Settings] = None,
        pricing: Optional[PricingCalculator] = None,
        clock: Callable[[], datetime] = now,
        logger: Optional[ILogger] = None,
    ):
        self._catalog = catalog
        self._ledger = ledger
        self._bookings = bookings
        self._event_bus = event_bus
        self._settings = settings or get_settings()
        self._pricing = pricing or PricingCalculator(currency=self._settings.currency)
        self._policy = BookingPolicy(
            max_booking_days=self._settings.max_booking_days,
            reject_past_start_dates=self._settings.reject_past_start_dates,
        )
        self._clock = clock
        self._logger = logger or ConsoleLogger()
        self._locks = KeyedLock("booking", timeout=self._settings.lock_timeout_seconds)

    # Создание бронирования

    def submit(
        self, payload: Union[SubmitBookingRequest, Mapping[str, Any]]
    ) -> SubmissionResult:
        """
        Создает бронирование в статусе pending_payment.

        Raises:
            ValidationException: некорректный запрос или недоступная дата/слот
            CatalogLookupException: неизвестный идентификатор каталога
            CapacityException: в одном из слотов не хватает мест
            PersistenceException: сбой хранилища
        """
        request = parse_request(payload)
        period = self._validate(request)
        self._resolve_references(request)

        created_at = self._clock()
        with ReservationBatch(self._ledger, logger=self._logger) as batch:
            tokens = []
            if request.include_activities:
                for selection in request.activities:
                    tokens.append(
                        batch.reserve(
                            selection.activity_id,
                            selection.date,
                            selection.slot_id,
                            selection.participants,
                        )
                    )

            breakdown = self._pricing.compute_cost(request, self._catalog)
            drafts = self._drafts(breakdown, [token.id for token in tokens])
            booking = Booking.create(
                tourist_id=request.tourist_id,
                tourist_full_name=request.tourist_full_name.strip(),
                destination_id=request.destination_id,
                period=period,
                total_cost=breakdown.total,
                drafts=drafts,
                include_transport=request.include_transport,
                include_hotel=request.include_hotel,
                include_activities=request.include_activities,
                created_at=created_at,
            )
            events = booking.pull_domain_events()
            self._bookings.add(booking)

        self._publish(events)
        self._logger.info(
            "Бронирование создано",
            booking_id=str(booking.id),
            tourist_id=str(booking.tourist_id),
            total_cost=str(breakdown.total.amount),
            items=len(booking.items),
        )
        return SubmissionResult(
            booking_id=booking.id,
            status=booking.status,
            total_cost=breakdown.total,
            breakdown=breakdown.lines,
        )

    def _validate(self, request: SubmitBookingRequest) -> DateRange:
        period = self._policy.validate_period(
            request.start_date, request.end_date, self._clock().date()
        )
        self._policy.validate_tourist_name(request.tourist_full_name)

        if not (request.include_transport or request.include_hotel or request.include_activities):
            raise ValidationException(
                "Выберите хотя бы одну услугу: транспорт, отель или активности",
                field="include_activities",
            )
        if request.include_transport and request.transport_id is None:
            raise ValidationException("Не указан маршрут транспорта", field="transport_id")
        if request.include_hotel and request.hotel_id is None:
            raise ValidationException("Не указан отель", field="hotel_id")
        if request.include_activities and not request.activities:
            raise ValidationException("Не выбрано ни одной активности", field="activities")
        return period

    def _resolve_references(self, request: SubmitBookingRequest) -> None:
        if request.destination_id is not None:
            self._catalog.get_destination(request.destination_id)
        if request.include_transport:
            self._catalog.get_transport_route(request.transport_id)
        if request.include_hotel:
            self._catalog.get_hotel(request.hotel_id)
        if not request.include_activities:
            return

        for index, selection in enumerate(request.activities):
            activity = self._catalog.get_activity(selection.activity_id)
            day = selection.date.isoformat()
            if not activity.runs_on(selection.date):
                raise ValidationException(
                    f"Активность {activity.name} не проводится {day}",
                    field=f"activities[{index}].date",
                )
            slot = activity.get_slot(selection.slot_id)
            if slot is None or not activity.is_offered(selection.date, selection.slot_id):
                raise ValidationException(
                    f"Слот {selection.slot_id} активности {activity.name} недоступен {day}",
                    field=f"activities[{index}].slot_id",
                )

    @staticmethod
    def _drafts(breakdown: CostBreakdown, reservation_ids: List[EntityId]) -> List[ItemDraft]:
        drafts = []
        reservations = iter(reservation_ids)
        for line in breakdown.lines:
            if line.kind == DESTINATION_LINE:
                continue
            details = dict(line.details)
            if line.kind == ItemType.ACTIVITY.value:
                details["reservation_id"] = str(next(reservations))
            elif line.kind == ItemType.PLACEHOLDER.value:
                details["note"] = line.description
            drafts.append(
                ItemDraft(
                    item_type=ItemType(line.kind),
                    reference_id=line.reference_id,
                    cost=line.cost,
                    item_details=details,
                )
            )
        return drafts

    # Оплата и отмена

    def on_payment_confirmed(self, booking_id: EntityId) -> BookingDTO:
        """Оплата прошла. Повторный вызов для оплаченного бронирования ничего не меняет."""
        with self._locks.hold(booking_id):
            booking = self._load(booking_id)
            if booking.status == BookingStatus.CANCELLED:
                raise ConflictException(
                    f"Бронирование {booking_id} уже отменено", resource=f"booking:{booking_id}"
                )
            if booking.status != BookingStatus.PENDING_PAYMENT:
                self._logger.debug(
                    "Оплата уже подтверждена", booking_id=str(booking_id), status=booking.status.value
                )
                return BookingDTO.from_domain(booking)

            expected = booking.version
            at = self._clock()
            booking.confirm_payment(at)
            booking.complete_if_fulfilled(at)
            events = self._save(booking, expected)

        self._publish(events)
        self._logger.info("Оплата подтверждена", booking_id=str(booking_id))
        return BookingDTO.from_domain(booking)

    def on_payment_failed(self, booking_id: EntityId) -> BookingDTO:
        return self.cancel(booking_id, reason="payment_failed")

    def cancel(self, booking_id: EntityId, reason: Optional[str] = None) -> BookingDTO:
        """
        Отменяет бронирование и освобождает все его резервирования.

        Повторная отмена не меняет бронирование, но заново освобождает
        резервирования, которые не удалось освободить в прошлый раз.
        """
        with self._locks.hold(booking_id):
            booking = self._load(booking_id)
            if booking.status == BookingStatus.CANCELLED:
                released = self._release_reservations(booking_id, booking.reservation_ids)
                self._logger.debug(
                    "Бронирование уже отменено", booking_id=str(booking_id), released=released
                )
                return BookingDTO.from_domain(booking)

            expected = booking.version
            reservation_ids = booking.cancel(reason, self._clock())
            events = self._save(booking, expected)
            released = self._release_reservations(booking_id, reservation_ids)

        self._publish(events)
        self._logger.info(
            "Бронирование отменено",
            booking_id=str(booking_id),
            reason=reason,
            released=released,
        )
        return BookingDTO.from_domain(booking)

    def _release_reservations(self, booking_id: EntityId, reservation_ids: List[EntityId]) -> int:
        released = 0
        for reservation_id in reservation_ids:
            try:
                if self._ledger.release_by_id(reservation_id):
                    released += 1
            except DomainException as e:
                # Резервирование останется за бронированием до повторной отмены
                self._logger.error(
                    "Не удалось освободить резервирование при отмене",
                    booking_id=str(booking_id),
                    reservation_id=str(reservation_id),
                    error=str(e),
                )
        return released

    def cancel_expired(self, at: Optional[datetime] = None) -> List[EntityId]:
        """Отменяет неоплаченные бронирования, у которых истек срок оплаты."""
        at = at or self._clock()
        grace = timedelta(minutes=self._settings.payment_grace_minutes)
        cancelled = []
        for booking in self._bookings.find_by_status(BookingStatus.PENDING_PAYMENT):
            if not booking.is_payment_overdue(at, grace):
                continue
            try:
                self.cancel(booking.id, reason="payment_timeout")
            except ConflictException as e:
                self._logger.warning(
                    "Не удалось отменить просроченное бронирование",
                    booking_id=str(booking.id),
                    error=str(e),
                )
                continue
            cancelled.append(booking.id)
        if cancelled:
            self._logger.info("Просроченные бронирования отменены", count=len(cancelled))
        return cancelled

    # Подтверждение позиций поставщиками

    def confirm_item(self, item_id: EntityId, details: Optional[Dict[str, Any]] = None) -> BookingDTO:
        """
        Поставщик подтверждает позицию (номер в отеле, билет, согласие гида).

        Проверка "все позиции подтверждены" и переход в completed выполняются
        в той же критической секции.
        """
        booking_id = self._bookings.find_booking_id_by_item(item_id)
        if booking_id is None:
            raise ValidationException(f"Позиция {item_id} не найдена", field="item_id")

        with self._locks.hold(booking_id):
            booking = self._load(booking_id)
            expected = booking.version
            at = self._clock()
            item = booking.confirm_item(item_id, details or {}, at)
            completed = booking.complete_if_fulfilled(at)
            events = self._save(booking, expected)

        self._publish(events)
        self._logger.info(
            "Позиция подтверждена поставщиком",
            booking_id=str(booking_id),
            item_id=str(item_id),
            item_type=item.item_type.value,
            completed=completed,
        )
        return BookingDTO.from_domain(booking)

    # Гид

    def attach_guide(
        self, booking_id: EntityId, guide_id: EntityId, guide_name: Optional[str] = None
    ) -> BookingItemDTO:
        """Записывает гида в позицию tour_guide и переводит бронирование в guide_assigned."""
        with self._locks.hold(booking_id):
            booking = self._load(booking_id)
            expected = booking.version
            item = booking.attach_guide(guide_id, guide_name, self._clock())
            events = self._save(booking, expected)

        self._publish(events)
        self._logger.info(
            "Гид закреплен за бронированием", booking_id=str(booking_id), guide_id=str(guide_id)
        )
        return BookingItemDTO.from_domain(item)

    def detach_guide(self, booking_id: EntityId, guide_id: EntityId) -> BookingDTO:
        with self._locks.hold(booking_id):
            booking = self._load(booking_id)
            expected = booking.version
            booking.detach_guide(guide_id, self._clock())
            events = self._save(booking, expected)

        self._publish(events)
        self._logger.info(
            "Гид снят с бронирования", booking_id=str(booking_id), guide_id=str(guide_id)
        )
        return BookingDTO.from_domain(booking)

    # Запросы

    def load_booking(self, booking_id: EntityId) -> Booking:
        """Возвращает агрегат (копию) для чтения другими контекстами."""
        return self._load(booking_id)

    def get_booking(self, booking_id: EntityId) -> BookingDTO:
        return BookingDTO.from_domain(self._load(booking_id))

    def list_bookings(
        self, tourist_id: Optional[EntityId] = None, status: Optional[BookingStatus] = None
    ) -> List[BookingDTO]:
        if tourist_id is not None:
            bookings = self._bookings.find_by_tourist(tourist_id)
        elif status is not None:
            bookings = self._bookings.find_by_status(status)
        else:
            bookings = self._bookings.list_all()
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        bookings.sort(key=lambda b: (b.created_at, str(b.id)))
        return [BookingDTO.from_domain(b) for b in bookings]

    def bookings_for_guide(self, guide_id: EntityId) -> List[BookingDTO]:
        """Бронирования, за которыми гид закреплен сейчас."""
        bookings = [
            b for b in self._bookings.find_by_guide(guide_id) if b.status in PAID_STATUSES
        ]
        bookings.sort(key=lambda b: (b.start_date, str(b.id)))
        return [BookingDTO.from_domain(b) for b in bookings]

    def unassigned_bookings(self) -> List[BookingDTO]:
        """Оплаченные бронирования с активностями, которым еще не назначен гид."""
        bookings = [
            b
            for b in self._bookings.find_by_status(BookingStatus.CONFIRMED)
            if b.tour_guide_item is not None and b.guide_id is None
        ]
        bookings.sort(key=lambda b: (b.start_date, str(b.id)))
        return [BookingDTO.from_domain(b) for b in bookings]

    def items_needing_action(
        self, item_type: ItemType, reference_id: Optional[EntityId] = None
    ) -> List[ProviderWorkItem]:
        """
        Неподтвержденные позиции поставщика в оплаченных бронированиях.

        reference_id сужает список до одного отеля, маршрута или гида.
        """
        return self._provider_items(
            item_type, reference_id, PAID_STATUSES, ProviderStatus.PENDING
        )

    def fulfilled_items(
        self, item_type: ItemType, reference_id: Optional[EntityId] = None
    ) -> List[ProviderWorkItem]:
        """Позиции, которые поставщик уже подтвердил (в том числе в завершенных бронированиях)."""
        statuses = PAID_STATUSES + (BookingStatus.COMPLETED,)
        return self._provider_items(
            item_type, reference_id, statuses, ProviderStatus.CONFIRMED
        )

    def _provider_items(
        self,
        item_type: ItemType,
        reference_id: Optional[EntityId],
        statuses: tuple,
        provider_status: ProviderStatus,
    ) -> List[ProviderWorkItem]:
        if item_type not in PROVIDER_ITEM_TYPES:
            raise ValidationException(
                f"Позиции типа {item_type.value} не подтверждаются поставщиком",
                field="item_type",
            )
        work = []
        for status in statuses:
            for booking in self._bookings.find_by_status(status):
                for item in booking.items:
                    if item.item_type != item_type or item.provider_status != provider_status:
                        continue
                    if reference_id is not None and item.reference_id != reference_id:
                        continue
                    work.append(
                        ProviderWorkItem(
                            booking_id=booking.id,
                            booking_status=booking.status,
                            tourist_id=booking.tourist_id,
                            tourist_full_name=booking.tourist_full_name,
                            start_date=booking.start_date,
                            end_date=booking.end_date,
                            item=BookingItemDTO.from_domain(item),
                        )
                    )
        work.sort(key=lambda w: (w.start_date, str(w.booking_id), str(w.item.id)))
        return work

    # Вспомогательные методы

    def _load(self, booking_id: EntityId) -> Booking:
        booking = self._bookings.get_by_id(booking_id)
        if booking is None:
            raise ValidationException(f"Бронирование {booking_id} не найдено", field="booking_id")
        return booking

    def _save(self, booking: Booking, expected_version: int) -> List[DomainEvent]:
        events = booking.pull_domain_events()
        self._bookings.update(booking, expected_version)
        return events

    def _publish(self, events: List[DomainEvent]) -> None:
        for event in events:
            self._event_bus.publish(event)
