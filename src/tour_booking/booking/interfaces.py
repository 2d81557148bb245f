"""
Интерфейсы (порты) для работы с бронированиями.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..shared_kernel import BookingStatus, EntityId
from .domain import Booking


class IBookingRepository(Protocol):
    """
    Репозиторий бронирований.

    update() сохраняет агрегат только если сохраненная версия совпадает
    с expected_version, иначе выбрасывает ConflictException.
    """

    def add(self, booking: Booking) -> None: ...
    def update(self, booking: Booking, expected_version: int) -> None: ...
    def get_by_id(self, booking_id: EntityId) -> Optional[Booking]: ...
    def find_booking_id_by_item(self, item_id: EntityId) -> Optional[EntityId]: ...
    def find_by_tourist(self, tourist_id: EntityId) -> List[Booking]: ...
    def find_by_status(self, status: BookingStatus) -> List[Booking]: ...
    def find_by_guide(self, guide_id: EntityId) -> List[Booking]: ...
    def list_all(self) -> List[Booking]: ...
