"""
Инфраструктурный слой каталога.

Содержит хранилище справочных данных в памяти и демонстрационный набор данных.
"""
from datetime import date, time
from decimal import Decimal
from typing import Dict, List
from uuid import UUID

from ..shared_kernel import CatalogLookupException, EntityId, Money
from . import interfaces as ports
from .domain import Activity, ActivityDate, Destination, Hotel, TimeSlot, TransportRoute

SERENGETI_ID = UUID("11111111-1111-1111-1111-111111111111")
KILIMANJARO_ID = UUID("22222222-2222-2222-2222-222222222222")
ZANZIBAR_ID = UUID("33333333-3333-3333-3333-333333333333")

SAFARI_TOUR_ID = UUID("aaaaaaaa-0000-0000-0000-000000000001")
KILIMANJARO_HIKE_ID = UUID("aaaaaaaa-0000-0000-0000-000000000002")
SPICE_TOUR_ID = UUID("aaaaaaaa-0000-0000-0000-000000000003")

DAR_TO_SERENGETI_ID = UUID("bbbbbbbb-0000-0000-0000-000000000001")
ARUSHA_TO_KILIMANJARO_ID = UUID("bbbbbbbb-0000-0000-0000-000000000002")
DAR_TO_ZANZIBAR_ID = UUID("bbbbbbbb-0000-0000-0000-000000000003")

SERENGETI_LODGE_ID = UUID("cccccccc-0000-0000-0000-000000000001")
KILIMANJARO_LODGE_ID = UUID("cccccccc-0000-0000-0000-000000000002")
ZANZIBAR_RESORT_ID = UUID("cccccccc-0000-0000-0000-000000000003")


class InMemoryCatalog(ports.ICatalog):
    """Реализация каталога в памяти."""

    def __init__(self) -> None:
        self._destinations: Dict[EntityId, Destination] = {}
        self._activities: Dict[EntityId, Activity] = {}
        self._routes: Dict[EntityId, TransportRoute] = {}
        self._hotels: Dict[EntityId, Hotel] = {}

    def add_destination(self, destination: Destination) -> None:
        self._destinations[destination.id] = destination

    def add_activity(self, activity: Activity) -> None:
        if activity.destination_id not in self._destinations:
            raise CatalogLookupException("Направление", activity.destination_id)
        self._activities[activity.id] = activity

    def add_transport_route(self, route: TransportRoute) -> None:
        self._routes[route.id] = route

    def add_hotel(self, hotel: Hotel) -> None:
        self._hotels[hotel.id] = hotel

    def get_destination(self, destination_id: EntityId) -> Destination:
        if destination_id not in self._destinations:
            raise CatalogLookupException("Направление", destination_id, field="destination_id")
        return self._destinations[destination_id]

    def get_activity(self, activity_id: EntityId) -> Activity:
        if activity_id not in self._activities:
            raise CatalogLookupException("Активность", activity_id, field="activity_id")
        return self._activities[activity_id]

    def get_transport_route(self, route_id: EntityId) -> TransportRoute:
        if route_id not in self._routes:
            raise CatalogLookupException("Маршрут", route_id, field="transport_id")
        return self._routes[route_id]

    def get_hotel(self, hotel_id: EntityId) -> Hotel:
        if hotel_id not in self._hotels:
            raise CatalogLookupException("Отель", hotel_id, field="hotel_id")
        return self._hotels[hotel_id]

    def list_activities(self, destination_id: EntityId) -> List[Activity]:
        return [
            activity
            for activity in self._activities.values()
            if activity.destination_id == destination_id
        ]

    def load_sample_data(self) -> None:
        """Заполняет каталог демонстрационными данными."""
        for destination in _sample_destinations():
            self.add_destination(destination)
        for activity in _sample_activities():
            self.add_activity(activity)
        for route in _sample_routes():
            self.add_transport_route(route)
        for hotel in _sample_hotels():
            self.add_hotel(hotel)


def _usd(amount: str) -> Money:
    return Money(amount=Decimal(amount), currency="USD")


def _december_2024(days: Dict[int, List[int]]) -> List[ActivityDate]:
    return [
        ActivityDate(date=date(2024, 12, day), available_slots=slots)
        for day, slots in sorted(days.items())
    ]


def _sample_destinations() -> List[Destination]:
    return [
        Destination(
            id=SERENGETI_ID,
            name="Serengeti National Park",
            location="Mara Region, Tanzania",
            day_rate=_usd("50.00"),
        ),
        Destination(
            id=KILIMANJARO_ID,
            name="Mount Kilimanjaro",
            location="Kilimanjaro Region, Tanzania",
            day_rate=_usd("40.00"),
        ),
        Destination(
            id=ZANZIBAR_ID,
            name="Zanzibar",
            location="Zanzibar, Tanzania",
            day_rate=_usd("30.00"),
        ),
    ]


def _sample_activities() -> List[Activity]:
    return [
        Activity(
            id=SAFARI_TOUR_ID,
            destination_id=SERENGETI_ID,
            name="Wildlife Safari Tour",
            price=_usd("250.00"),
            time_slots=[
                TimeSlot(slot_id=0, start_time=time(6), end_time=time(12), max_participants=8),
                TimeSlot(slot_id=1, start_time=time(14), end_time=time(18), max_participants=8),
            ],
            available_dates=_december_2024(
                {20: [0, 1], 21: [0, 1], 22: [0, 1], 23: [1], 24: [0, 1]}
            ),
        ),
        Activity(
            id=KILIMANJARO_HIKE_ID,
            destination_id=KILIMANJARO_ID,
            name="Kilimanjaro Day Hike",
            price=_usd("150.00"),
            time_slots=[
                TimeSlot(slot_id=0, start_time=time(5), end_time=time(17), max_participants=6),
            ],
            available_dates=_december_2024({20: [0], 21: [0], 22: [], 23: [0], 24: [0]}),
        ),
        Activity(
            id=SPICE_TOUR_ID,
            destination_id=ZANZIBAR_ID,
            name="Spice Tour & Cultural Experience",
            price=_usd("80.00"),
            time_slots=[
                TimeSlot(slot_id=0, start_time=time(9), end_time=time(13), max_participants=12),
                TimeSlot(slot_id=1, start_time=time(15), end_time=time(19), max_participants=12),
            ],
            available_dates=_december_2024(
                {20: [0, 1], 21: [0, 1], 22: [0, 1], 23: [0, 1], 24: [0]}
            ),
        ),
    ]


def _sample_routes() -> List[TransportRoute]:
    return [
        TransportRoute(
            id=DAR_TO_SERENGETI_ID,
            origin="Dar es Salaam",
            destination_id=SERENGETI_ID,
            transportation_type="flight",
            cost=_usd("120.00"),
        ),
        TransportRoute(
            id=ARUSHA_TO_KILIMANJARO_ID,
            origin="Arusha",
            destination_id=KILIMANJARO_ID,
            transportation_type="bus",
            cost=_usd("45.00"),
        ),
        TransportRoute(
            id=DAR_TO_ZANZIBAR_ID,
            origin="Dar es Salaam",
            destination_id=ZANZIBAR_ID,
            transportation_type="ferry",
            cost=_usd("35.00"),
        ),
    ]


def _sample_hotels() -> List[Hotel]:
    return [
        Hotel(
            id=SERENGETI_LODGE_ID,
            destination_id=SERENGETI_ID,
            name="Serengeti Safari Lodge",
            base_price_per_night=_usd("180.00"),
        ),
        Hotel(
            id=KILIMANJARO_LODGE_ID,
            destination_id=KILIMANJARO_ID,
            name="Kilimanjaro Mountain Lodge",
            base_price_per_night=_usd("120.00"),
        ),
        Hotel(
            id=ZANZIBAR_RESORT_ID,
            destination_id=ZANZIBAR_ID,
            name="Zanzibar Beach Resort",
            base_price_per_night=_usd("150.00"),
        ),
    ]
