"""
Интерфейсы (порты) для каталога.
"""

from __future__ import annotations

from typing import List, Protocol

from ..shared_kernel import EntityId
from .domain import Activity, Destination, Hotel, TransportRoute


class ICatalog(Protocol):
    """
    Каталог справочных данных только для чтения.

    Методы get_* выбрасывают CatalogLookupException для неизвестных идентификаторов.
    """

    def get_destination(self, destination_id: EntityId) -> Destination: ...
    def get_activity(self, activity_id: EntityId) -> Activity: ...
    def get_transport_route(self, route_id: EntityId) -> TransportRoute: ...
    def get_hotel(self, hotel_id: EntityId) -> Hotel: ...
    def list_activities(self, destination_id: EntityId) -> List[Activity]: ...
