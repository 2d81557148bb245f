"""
Конфигурация тестов для pytest.
Добавляет каталог src в PYTHONPATH и предоставляет общие фикстуры.
"""
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

import pytest

# Добавляем каталог с исходным кодом в PYTHONPATH
src_dir = str(Path(__file__).parent.parent / "src")
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from tour_booking.bootstrap import bootstrap_app  # noqa: E402
from tour_booking.catalog.infrastructure import (  # noqa: E402
    DAR_TO_SERENGETI_ID,
    SAFARI_TOUR_ID,
    SERENGETI_ID,
    SERENGETI_LODGE_ID,
)
from tour_booking.config import Settings  # noqa: E402


class FakeClock:
    """Управляемые часы для тестов."""

    def __init__(self, current: datetime):
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    """Часы, остановленные на 1 декабря 2024 года."""
    return FakeClock(datetime(2024, 12, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        data_dir=None,
        seed_sample_data=True,
        lock_timeout_seconds=2.0,
        payment_grace_minutes=30,
    )


@pytest.fixture
def app(settings, clock):
    """Полностью настроенное приложение с демонстрационными данными."""
    return bootstrap_app(settings=settings, clock=clock)


@pytest.fixture
def catalog(app):
    return app["catalog"]


@pytest.fixture
def ledger(app):
    return app["ledger"]


@pytest.fixture
def composer(app):
    return app["composer"]


@pytest.fixture
def matcher(app):
    return app["matcher"]


@pytest.fixture
def make_request():
    """Фабрика запросов на бронирование сафари в Серенгети."""

    def factory(**overrides):
        request = {
            "tourist_id": str(uuid4()),
            "tourist_full_name": "Иван Петров",
            "destination_id": str(SERENGETI_ID),
            "start_date": date(2024, 12, 20),
            "end_date": date(2024, 12, 25),
            "include_transport": True,
            "transport_id": str(DAR_TO_SERENGETI_ID),
            "include_hotel": True,
            "hotel_id": str(SERENGETI_LODGE_ID),
            "include_activities": True,
            "activities": [
                {
                    "activity_id": str(SAFARI_TOUR_ID),
                    "date": date(2024, 12, 21),
                    "slot_id": 0,
                    "participants": 2,
                }
            ],
        }
        request.update(overrides)
        return request

    return factory
