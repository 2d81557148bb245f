"""
Инфраструктурный слой гидов: репозитории и демонстрационные профили.
"""
import threading
from typing import Dict, List, Optional
from uuid import UUID

from ..catalog.infrastructure import (
    KILIMANJARO_HIKE_ID,
    KILIMANJARO_ID,
    SAFARI_TOUR_ID,
    SERENGETI_ID,
    SPICE_TOUR_ID,
    ZANZIBAR_ID,
)
from ..shared_kernel import EntityId, ILogger, JsonFileStore
from . import interfaces as ports
from .domain import GuideProfile

AMANI_ID = UUID("dddddddd-0000-0000-0000-000000000001")
BARAKA_ID = UUID("dddddddd-0000-0000-0000-000000000002")
NEEMA_ID = UUID("dddddddd-0000-0000-0000-000000000003")
JOSEPH_ID = UUID("dddddddd-0000-0000-0000-000000000004")


class InMemoryGuideRepository(ports.IGuideRepository):
    """Реализация репозитория гидов в памяти."""

    def __init__(self) -> None:
        self._guides: Dict[EntityId, GuideProfile] = {}
        self._lock = threading.Lock()

    def get_by_id(self, guide_id: EntityId) -> Optional[GuideProfile]:
        with self._lock:
            guide = self._guides.get(guide_id)
            return guide.model_copy(deep=True) if guide is not None else None

    def save(self, guide: GuideProfile) -> None:
        with self._lock:
            self._guides[guide.user_id] = guide.model_copy(deep=True)

    def list_all(self) -> List[GuideProfile]:
        with self._lock:
            return [guide.model_copy(deep=True) for guide in self._guides.values()]


class JsonFileGuideRepository(ports.IGuideRepository):
    """Репозиторий гидов в JSON-файле."""

    def __init__(self, file_path: str, logger: Optional[ILogger] = None):
        self._store: JsonFileStore[GuideProfile] = JsonFileStore(
            file_path, GuideProfile, key=lambda guide: guide.user_id, logger=logger
        )

    def get_by_id(self, guide_id: EntityId) -> Optional[GuideProfile]:
        return self._store.get(guide_id)

    def save(self, guide: GuideProfile) -> None:
        self._store.put(guide)

    def list_all(self) -> List[GuideProfile]:
        return self._store.values()


def sample_guides() -> List[GuideProfile]:
    return [
        GuideProfile(
            user_id=AMANI_ID,
            full_name="Amani Mushi",
            destination_id=SERENGETI_ID,
            activity_ids=[SAFARI_TOUR_ID],
            description="Сафари-гид, 10 лет в Серенгети",
        ),
        GuideProfile(
            user_id=BARAKA_ID,
            full_name="Baraka Kimaro",
            destination_id=KILIMANJARO_ID,
            activity_ids=[KILIMANJARO_HIKE_ID],
            description="Горный гид",
        ),
        GuideProfile(
            user_id=NEEMA_ID,
            full_name="Neema Said",
            destination_id=ZANZIBAR_ID,
            activity_ids=[SPICE_TOUR_ID],
        ),
        GuideProfile(
            user_id=JOSEPH_ID,
            full_name="Joseph Lema",
            activity_ids=[SAFARI_TOUR_ID, SPICE_TOUR_ID],
            description="Работает на нескольких направлениях",
        ),
    ]


def load_sample_guides(repository: ports.IGuideRepository) -> None:
    """Заполняет пустой репозиторий демонстрационными профилями."""
    if repository.list_all():
        return
    for guide in sample_guides():
        repository.save(guide)
