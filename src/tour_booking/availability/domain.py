"""
Доменная модель учета доступности (Availability Ledger).

Счетчики занятых мест хранятся отдельно для каждой тройки
(активность, дата, слот). Каждая запись знает свои резервирования,
поэтому занятие и освобождение мест сохраняются одной записью.
"""

from datetime import date, datetime
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..shared_kernel import EntityId, generate_id, now


class SlotKey(BaseModel):
    """Ключ слота: активность, дата и идентификатор слота."""

    model_config = ConfigDict(frozen=True)

    activity_id: EntityId
    date: date
    slot_id: int

    def __str__(self) -> str:
        return f"{self.activity_id}/{self.date.isoformat()}/{self.slot_id}"


class ReservationToken(BaseModel):
    """Предварительное резервирование мест в слоте."""

    model_config = ConfigDict(frozen=True)

    id: EntityId = Field(default_factory=generate_id)
    key: SlotKey
    participants: int = Field(..., gt=0)
    created_at: datetime = Field(default_factory=now)


class Denied(BaseModel):
    """Отказ в резервировании: мест в слоте недостаточно."""

    model_config = ConfigDict(frozen=True)

    key: SlotKey
    requested: int
    available: int
    slot_label: str


class AvailabilityRecord(BaseModel):
    """Состояние одного слота: сколько мест уже занято и кем."""

    key: SlotKey
    booked_participants: int = Field(0, ge=0)
    reservations: Dict[EntityId, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def counters_match(self) -> "AvailabilityRecord":
        if self.booked_participants != sum(self.reservations.values()):
            raise ValueError(
                f"Счетчик слота {self.key} не совпадает с суммой резервирований"
            )
        return self

    def hold(self, token: ReservationToken) -> None:
        self.reservations[token.id] = token.participants
        self.booked_participants += token.participants

    def drop(self, reservation_id: EntityId) -> bool:
        participants = self.reservations.pop(reservation_id, None)
        if participants is None:
            return False
        self.booked_participants -= participants
        return True


class SlotAvailability(BaseModel):
    """Снимок доступности слота для отображения и проверки."""

    activity_id: EntityId
    date: date
    slot_id: int
    slot_label: str
    available_spots: int
    booked_spots: int
    total_spots: int
    available: bool
