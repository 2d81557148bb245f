import logging
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .availability.application import AvailabilityLedger
from .availability.infrastructure import InMemoryAvailabilityStore, JsonFileAvailabilityStore
from .booking.application import BookingComposer
from .booking.domain import BookingCancelled
from .booking.infrastructure import InMemoryBookingRepository, JsonFileBookingRepository
from .catalog.infrastructure import InMemoryCatalog
from .config import Settings, get_settings
from .guides.application import GuideMatcher
from .guides.event_handlers import on_booking_cancelled
from .guides.infrastructure import (
    InMemoryGuideRepository,
    JsonFileGuideRepository,
    load_sample_guides,
)
from .shared_kernel import ConsoleLogger, InMemoryEventBus, KeyedLock, now


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def bootstrap_app(
    settings: Optional[Settings] = None, clock: Callable[[], datetime] = now
) -> Dict[str, Any]:
    """Создает и настраивает все компоненты приложения."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    logger = ConsoleLogger()
    event_bus = InMemoryEventBus(logger=logger)

    # 1. Каталог (только чтение)
    catalog = InMemoryCatalog()
    if settings.seed_sample_data:
        catalog.load_sample_data()

    # 2. Хранилища: в памяти или в JSON-файлах
    if settings.data_dir:
        data_dir = Path(settings.data_dir)
        availability_store = JsonFileAvailabilityStore(
            str(data_dir / "availability.json"), logger=logger
        )
        bookings = JsonFileBookingRepository(str(data_dir / "bookings.json"), logger=logger)
        guides = JsonFileGuideRepository(str(data_dir / "guides.json"), logger=logger)
    else:
        availability_store = InMemoryAvailabilityStore()
        bookings = InMemoryBookingRepository()
        guides = InMemoryGuideRepository()
    if settings.seed_sample_data:
        load_sample_guides(guides)

    # 3. Сервисы
    timeout = settings.lock_timeout_seconds
    ledger = AvailabilityLedger(
        availability_store, catalog, locks=KeyedLock("slot", timeout=timeout), logger=logger
    )
    composer = BookingComposer(
        catalog,
        ledger,
        bookings,
        event_bus,
        settings=settings,
        clock=clock,
        logger=logger,
    )
    matcher = GuideMatcher(
        guides,
        composer,
        catalog,
        event_bus=event_bus,
        locks=KeyedLock("guide", timeout=timeout),
        logger=logger,
    )

    # 4. Подписываем обработчики на события
    event_bus.subscribe(BookingCancelled, partial(on_booking_cancelled, service=matcher))

    return {
        "settings": settings,
        "logger": logger,
        "event_bus": event_bus,
        "catalog": catalog,
        "ledger": ledger,
        "composer": composer,
        "matcher": matcher,
    }
