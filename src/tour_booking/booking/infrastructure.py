"""
Инфраструктурный слой бронирований: репозитории в памяти и в JSON-файле.
"""
import threading
from typing import Callable, Dict, List, Optional

from ..shared_kernel import (
    BookingStatus,
    ConflictException,
    EntityId,
    ILogger,
    JsonFileStore,
)
from . import interfaces as ports
from .domain import Booking


def _detached(booking: Booking) -> Booking:
    copy = booking.model_copy(deep=True)
    copy.clear_events()
    return copy


def _check_version(stored: Optional[Booking], booking: Booking, expected_version: int) -> None:
    if stored is None:
        raise ConflictException(
            f"Бронирование {booking.id} не найдено", resource=f"booking:{booking.id}"
        )
    if stored.version != expected_version:
        raise ConflictException(
            f"Бронирование {booking.id} было изменено параллельно "
            f"(ожидалась версия {expected_version}, сохранена {stored.version})",
            resource=f"booking:{booking.id}",
        )


class InMemoryBookingRepository(ports.IBookingRepository):
    """Реализация репозитория бронирований в памяти."""

    def __init__(self) -> None:
        self._bookings: Dict[EntityId, Booking] = {}
        self._lock = threading.Lock()

    def add(self, booking: Booking) -> None:
        with self._lock:
            if booking.id in self._bookings:
                raise ConflictException(
                    f"Бронирование {booking.id} уже существует",
                    resource=f"booking:{booking.id}",
                )
            self._bookings[booking.id] = _detached(booking)

    def update(self, booking: Booking, expected_version: int) -> None:
        with self._lock:
            _check_version(self._bookings.get(booking.id), booking, expected_version)
            self._bookings[booking.id] = _detached(booking)

    def get_by_id(self, booking_id: EntityId) -> Optional[Booking]:
        with self._lock:
            booking = self._bookings.get(booking_id)
            return _detached(booking) if booking is not None else None

    def find_booking_id_by_item(self, item_id: EntityId) -> Optional[EntityId]:
        with self._lock:
            for booking in self._bookings.values():
                if any(item.id == item_id for item in booking.items):
                    return booking.id
        return None

    def _select(self, predicate: Callable[[Booking], bool]) -> List[Booking]:
        with self._lock:
            return [_detached(b) for b in self._bookings.values() if predicate(b)]

    def find_by_tourist(self, tourist_id: EntityId) -> List[Booking]:
        return self._select(lambda b: b.tourist_id == tourist_id)

    def find_by_status(self, status: BookingStatus) -> List[Booking]:
        return self._select(lambda b: b.status == status)

    def find_by_guide(self, guide_id: EntityId) -> List[Booking]:
        return self._select(lambda b: b.guide_id == guide_id)

    def list_all(self) -> List[Booking]:
        return self._select(lambda b: True)


class JsonFileBookingRepository(ports.IBookingRepository):
    """Репозиторий бронирований в JSON-файле."""

    def __init__(self, file_path: str, logger: Optional[ILogger] = None):
        self._store: JsonFileStore[Booking] = JsonFileStore(
            file_path, Booking, key=lambda booking: booking.id, logger=logger
        )
        self._lock = threading.Lock()
        self._item_index: Dict[EntityId, EntityId] = {
            item.id: booking.id for booking in self._store.values() for item in booking.items
        }

    def _put(self, booking: Booking) -> None:
        self._store.put(_detached(booking))
        for item in booking.items:
            self._item_index[item.id] = booking.id

    def add(self, booking: Booking) -> None:
        with self._lock:
            if self._store.get(booking.id) is not None:
                raise ConflictException(
                    f"Бронирование {booking.id} уже существует",
                    resource=f"booking:{booking.id}",
                )
            self._put(booking)

    def update(self, booking: Booking, expected_version: int) -> None:
        with self._lock:
            _check_version(self._store.get(booking.id), booking, expected_version)
            self._put(booking)

    def get_by_id(self, booking_id: EntityId) -> Optional[Booking]:
        return self._store.get(booking_id)

    def find_booking_id_by_item(self, item_id: EntityId) -> Optional[EntityId]:
        with self._lock:
            return self._item_index.get(item_id)

    def find_by_tourist(self, tourist_id: EntityId) -> List[Booking]:
        return [b for b in self._store.values() if b.tourist_id == tourist_id]

    def find_by_status(self, status: BookingStatus) -> List[Booking]:
        return [b for b in self._store.values() if b.status == status]

    def find_by_guide(self, guide_id: EntityId) -> List[Booking]:
        return [b for b in self._store.values() if b.guide_id == guide_id]

    def list_all(self) -> List[Booking]:
        return self._store.values()
