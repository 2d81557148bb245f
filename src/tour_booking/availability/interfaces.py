"""
Интерфейсы (порты) для учета доступности.
"""

from __future__ import annotations

from typing import Optional, Protocol

from ..shared_kernel import EntityId
from .domain import AvailabilityRecord, SlotKey


class IAvailabilityStore(Protocol):
    """
    Хранилище счетчиков слотов.

    Запись сохраняется целиком: счетчик и список резервирований
    меняются одной операцией записи.
    """

    def get_record(self, key: SlotKey) -> Optional[AvailabilityRecord]: ...
    def save_record(self, record: AvailabilityRecord) -> None: ...
    def find_key_by_reservation(self, reservation_id: EntityId) -> Optional[SlotKey]: ...
