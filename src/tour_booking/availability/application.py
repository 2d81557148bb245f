"""
Прикладной слой учета доступности.

AvailabilityLedger выдает и освобождает резервирования мест в слотах
активностей. Проверка и увеличение счетчика выполняются в одной критической
секции на ключ слота, поэтому параллельные запросы не могут вместе превысить
вместимость.
"""

from datetime import date
from typing import List, Optional, Union

from ..catalog.domain import Activity, TimeSlot
from ..catalog.interfaces import ICatalog
from ..shared_kernel import (
    CapacityException,
    ConsoleLogger,
    DomainException,
    EntityId,
    ILogger,
    KeyedLock,
    ValidationException,
)
from . import interfaces as ports
from .domain import AvailabilityRecord, Denied, ReservationToken, SlotAvailability, SlotKey


class AvailabilityLedger:
    """Учет занятых мест по слотам активностей."""

    def __init__(
        self,
        store: ports.IAvailabilityStore,
        catalog: ICatalog,
        locks: Optional[KeyedLock] = None,
        logger: Optional[ILogger] = None,
    ):
        self._store = store
        self._catalog = catalog
        self._locks = locks or KeyedLock("slot")
        self._logger = logger or ConsoleLogger()

    def _get_slot(self, activity: Activity, slot_id: int) -> TimeSlot:
        slot = activity.get_slot(slot_id)
        if slot is None:
            raise ValidationException(
                f"У активности {activity.name} нет слота {slot_id}", field="slot_id"
            )
        return slot

    def _resolve_offered_slot(
        self, activity_id: EntityId, day: date, slot_id: int
    ) -> TimeSlot:
        activity = self._catalog.get_activity(activity_id)
        slot = self._get_slot(activity, slot_id)
        if not activity.runs_on(day):
            raise ValidationException(
                f"Активность {activity.name} не проводится {day.isoformat()}",
                field="date",
            )
        if not activity.is_offered(day, slot_id):
            raise ValidationException(
                f"Слот {slot.label} активности {activity.name} недоступен "
                f"{day.isoformat()}",
                field="slot_id",
            )
        return slot

    def reserve(
        self, activity_id: EntityId, day: date, slot_id: int, participants: int
    ) -> Union[ReservationToken, Denied]:
        """
        Резервирует места в слоте.

        Возвращает ReservationToken или Denied, если мест не хватает.
        Нехватка мест не является ошибкой и не приводит к исключению.
        """
        if participants <= 0:
            raise ValidationException(
                "Количество участников должно быть положительным", field="participants"
            )
        slot = self._resolve_offered_slot(activity_id, day, slot_id)
        key = SlotKey(activity_id=activity_id, date=day, slot_id=slot_id)

        with self._locks.hold(key):
            record = self._store.get_record(key) or AvailabilityRecord(key=key)
            free = slot.max_participants - record.booked_participants
            if participants > free:
                self._logger.warning(
                    "Резервирование отклонено: слот заполнен",
                    slot=str(key),
                    requested=participants,
                    available=free,
                )
                return Denied(
                    key=key, requested=participants, available=free, slot_label=slot.label
                )

            token = ReservationToken(key=key, participants=participants)
            record.hold(token)
            self._store.save_record(record)

        self._logger.info(
            "Места зарезервированы",
            slot=str(key),
            reservation_id=str(token.id),
            participants=participants,
        )
        return token

    def release(self, token: ReservationToken) -> bool:
        """Освобождает резервирование. Повторное освобождение ничего не меняет."""
        return self.release_by_id(token.id)

    def release_by_id(self, reservation_id: EntityId) -> bool:
        key = self._store.find_key_by_reservation(reservation_id)
        if key is None:
            self._logger.debug(
                "Резервирование уже освобождено", reservation_id=str(reservation_id)
            )
            return False

        with self._locks.hold(key):
            record = self._store.get_record(key)
            if record is None or not record.drop(reservation_id):
                return False
            self._store.save_record(record)

        self._logger.info(
            "Резервирование освобождено", slot=str(key), reservation_id=str(reservation_id)
        )
        return True

    def query(self, activity_id: EntityId, day: date, slot_id: int) -> SlotAvailability:
        """Текущая доступность слота (без кеширования)."""
        activity = self._catalog.get_activity(activity_id)
        slot = self._get_slot(activity, slot_id)
        return self._snapshot(activity, slot, day)

    def list_slots(self, activity_id: EntityId, day: date) -> List[SlotAvailability]:
        """Доступность всех слотов активности, проводимых в указанный день."""
        activity = self._catalog.get_activity(activity_id)
        return [self._snapshot(activity, slot, day) for slot in activity.slots_on(day)]

    def _snapshot(self, activity: Activity, slot: TimeSlot, day: date) -> SlotAvailability:
        key = SlotKey(activity_id=activity.id, date=day, slot_id=slot.slot_id)
        record = self._store.get_record(key)
        booked = record.booked_participants if record is not None else 0
        available_spots = max(0, slot.max_participants - booked)
        return SlotAvailability(
            activity_id=activity.id,
            date=day,
            slot_id=slot.slot_id,
            slot_label=slot.label,
            available_spots=available_spots,
            booked_spots=booked,
            total_spots=slot.max_participants,
            available=activity.is_offered(day, slot.slot_id) and available_spots > 0,
        )


class ReservationBatch:
    """
    Единица работы над несколькими резервированиями.

    Если блок with завершается исключением или вызывается rollback(),
    все резервирования, взятые в этом блоке, освобождаются.
    """

    def __init__(self, ledger: AvailabilityLedger, logger: Optional[ILogger] = None):
        self._ledger = ledger
        self._logger = logger or ConsoleLogger()
        self._tokens: List[ReservationToken] = []
        self._committed = False

    @property
    def tokens(self) -> List[ReservationToken]:
        return list(self._tokens)

    def reserve(
        self, activity_id: EntityId, day: date, slot_id: int, participants: int
    ) -> ReservationToken:
        """Резервирует места или выбрасывает CapacityException."""
        result = self._ledger.reserve(activity_id, day, slot_id, participants)
        if isinstance(result, Denied):
            raise CapacityException(
                activity_id=activity_id,
                day=day,
                slot_id=slot_id,
                requested=result.requested,
                available=result.available,
                slot_label=result.slot_label,
            )
        self._tokens.append(result)
        return result

    def commit(self) -> None:
        """Фиксирует резервирования."""
        self._committed = True

    def rollback(self) -> None:
        """Освобождает все резервирования пакета."""
        if self._committed:
            return
        released = 0
        for token in reversed(self._tokens):
            try:
                if self._ledger.release(token):
                    released += 1
            except DomainException as e:
                # Откат продолжается для остальных слотов
                self._logger.error(
                    "Не удалось освободить резервирование при откате",
                    reservation_id=str(token.id),
                    error=str(e),
                )
        if self._tokens:
            self._logger.warning(
                "ReservationBatch rolled back", released=released, taken=len(self._tokens)
            )
        self._tokens = []

    def __enter__(self) -> "ReservationBatch":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False  # Пробрасываем исключение дальше, если оно было
