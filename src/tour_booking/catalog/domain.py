"""
Доменная модель каталога.

Справочные данные только для чтения: направления, активности с временными
слотами и вместимостью, транспортные маршруты и отели.
"""

from datetime import date, time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..shared_kernel import EntityId, Money, generate_id


class Destination(BaseModel):
    """Направление (туристическое место)."""

    model_config = ConfigDict(frozen=True)

    id: EntityId = Field(default_factory=generate_id)
    name: str
    location: str = ""
    day_rate: Money  # Стоимость одного дня пребывания


class TimeSlot(BaseModel):
    """Временной слот активности. Вместимость задается на слот, а не на день."""

    model_config = ConfigDict(frozen=True)

    slot_id: int = Field(..., ge=0)
    start_time: time
    end_time: time
    max_participants: int = Field(..., gt=0)

    @model_validator(mode="after")
    def end_after_start(self) -> "TimeSlot":
        if self.end_time <= self.start_time:
            raise ValueError("Время окончания слота должно быть позже времени начала")
        return self

    @property
    def label(self) -> str:
        return f"{self.start_time:%H:%M}-{self.end_time:%H:%M}"


class ActivityDate(BaseModel):
    """Дата проведения активности. None в available_slots означает все слоты."""

    model_config = ConfigDict(frozen=True)

    date: date
    available_slots: Optional[List[int]] = None


class Activity(BaseModel):
    """Активность направления с расписанием слотов."""

    model_config = ConfigDict(frozen=True)

    id: EntityId = Field(default_factory=generate_id)
    destination_id: EntityId
    name: str
    price: Money  # За одного участника
    time_slots: List[TimeSlot]
    available_dates: List[ActivityDate] = Field(default_factory=list)

    @field_validator("time_slots")
    @classmethod
    def order_slots(cls, v: List[TimeSlot]) -> List[TimeSlot]:
        if not v:
            raise ValueError("У активности должен быть хотя бы один слот")
        return sorted(v, key=lambda s: s.slot_id)

    @model_validator(mode="after")
    def check_schedule(self) -> "Activity":
        slot_ids = [slot.slot_id for slot in self.time_slots]
        if len(set(slot_ids)) != len(slot_ids):
            raise ValueError("Идентификаторы слотов должны быть уникальны")

        seen_dates = set()
        for entry in self.available_dates:
            if entry.date in seen_dates:
                raise ValueError(f"Дата {entry.date.isoformat()} указана дважды")
            seen_dates.add(entry.date)
            unknown = set(entry.available_slots or []) - set(slot_ids)
            if unknown:
                raise ValueError(
                    f"Дата {entry.date.isoformat()} ссылается на несуществующие "
                    f"слоты: {sorted(unknown)}"
                )
        return self

    @property
    def schedule(self) -> Dict[date, ActivityDate]:
        return {entry.date: entry for entry in self.available_dates}

    def get_slot(self, slot_id: int) -> Optional[TimeSlot]:
        for slot in self.time_slots:
            if slot.slot_id == slot_id:
                return slot
        return None

    def runs_on(self, day: date) -> bool:
        return day in self.schedule

    def slots_on(self, day: date) -> List[TimeSlot]:
        """Слоты, которые проводятся в указанный день."""
        entry = self.schedule.get(day)
        if entry is None:
            return []
        if entry.available_slots is None:
            return list(self.time_slots)
        return [s for s in self.time_slots if s.slot_id in entry.available_slots]

    def is_offered(self, day: date, slot_id: int) -> bool:
        return any(slot.slot_id == slot_id for slot in self.slots_on(day))


class TransportRoute(BaseModel):
    """Транспортный маршрут с фиксированной стоимостью."""

    model_config = ConfigDict(frozen=True)

    id: EntityId = Field(default_factory=generate_id)
    origin: str
    destination_id: EntityId
    transportation_type: str = "bus"
    cost: Money


class Hotel(BaseModel):
    """Отель направления."""

    model_config = ConfigDict(frozen=True)

    id: EntityId = Field(default_factory=generate_id)
    destination_id: EntityId
    name: str
    base_price_per_night: Money
