"""
Инфраструктурный слой учета доступности.

Хранилища счетчиков слотов: в памяти и в JSON-файле.
"""
import threading
from typing import Dict, Optional

from ..shared_kernel import EntityId, ILogger, JsonFileStore
from . import interfaces as ports
from .domain import AvailabilityRecord, SlotKey


class InMemoryAvailabilityStore(ports.IAvailabilityStore):
    """Реализация хранилища счетчиков в памяти."""

    def __init__(self) -> None:
        self._records: Dict[SlotKey, AvailabilityRecord] = {}
        self._reservation_index: Dict[EntityId, SlotKey] = {}
        self._lock = threading.Lock()

    def get_record(self, key: SlotKey) -> Optional[AvailabilityRecord]:
        with self._lock:
            record = self._records.get(key)
            return record.model_copy(deep=True) if record is not None else None

    def save_record(self, record: AvailabilityRecord) -> None:
        with self._lock:
            previous = self._records.get(record.key)
            if previous is not None:
                for reservation_id in previous.reservations:
                    self._reservation_index.pop(reservation_id, None)
            self._records[record.key] = record.model_copy(deep=True)
            for reservation_id in record.reservations:
                self._reservation_index[reservation_id] = record.key

    def find_key_by_reservation(self, reservation_id: EntityId) -> Optional[SlotKey]:
        with self._lock:
            return self._reservation_index.get(reservation_id)


class JsonFileAvailabilityStore(ports.IAvailabilityStore):
    """Хранилище счетчиков в JSON-файле. Переживает перезапуск процесса."""

    def __init__(self, file_path: str, logger: Optional[ILogger] = None):
        self._store: JsonFileStore[AvailabilityRecord] = JsonFileStore(
            file_path, AvailabilityRecord, key=lambda record: record.key, logger=logger
        )
        self._lock = threading.Lock()
        self._reservation_index: Dict[EntityId, SlotKey] = {
            reservation_id: record.key
            for record in self._store.values()
            for reservation_id in record.reservations
        }

    def get_record(self, key: SlotKey) -> Optional[AvailabilityRecord]:
        return self._store.get(key)

    def save_record(self, record: AvailabilityRecord) -> None:
        with self._lock:
            previous = self._store.get(record.key)
            self._store.put(record)
            if previous is not None:
                for reservation_id in previous.reservations:
                    self._reservation_index.pop(reservation_id, None)
            for reservation_id in record.reservations:
                self._reservation_index[reservation_id] = record.key

    def find_key_by_reservation(self, reservation_id: EntityId) -> Optional[SlotKey]:
        with self._lock:
            return self._reservation_index.get(reservation_id)
