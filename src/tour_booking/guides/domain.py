"""
Доменная модель контекста гидов.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..shared_kernel import DomainEvent, EntityId, now


class GuideProfile(BaseModel):
    """
    Профиль гида.

    Флаг available означает "может получить новое назначение". Гид снимает
    флаг при назначении и возвращает его только при снятии с бронирования
    или вручную.
    """

    user_id: EntityId
    full_name: str
    destination_id: Optional[EntityId] = None
    activity_ids: List[EntityId] = Field(default_factory=list)
    description: str = ""
    license_document_url: Optional[str] = None
    available: bool = True

    @field_validator("full_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Имя гида должно содержать не менее 2 символов")
        return v

    @field_validator("activity_ids")
    @classmethod
    def unique_activities(cls, v: List[EntityId]) -> List[EntityId]:
        return list(dict.fromkeys(v))

    @property
    def sort_key(self):
        return (self.full_name, str(self.user_id))

    def covers(self, destination_id: Optional[EntityId], activity_ids: List[EntityId]) -> bool:
        """Гид работает в направлении бронирования или ведет одну из его активностей."""
        if destination_id is not None and self.destination_id == destination_id:
            return True
        return bool(set(self.activity_ids) & set(activity_ids))


class Assignment(BaseModel):
    """Результат назначения гида на бронирование."""

    booking_id: EntityId
    guide_id: EntityId
    guide_name: str
    item_id: EntityId
    assigned_at: datetime = Field(default_factory=now)


class GuideAvailabilityChanged(DomainEvent):
    guide_id: EntityId
    available: bool
