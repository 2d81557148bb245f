"""
Основные доменные типы и утилиты общего ядра.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Общие типы идентификаторов
EntityId = UUID


def generate_id() -> UUID:
    """Генерирует новый UUID."""
    return uuid4()


class Money(BaseModel):
    """Денежная сумма с валютой."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(..., ge=0, description="Сумма денег")
    currency: str = Field(
        default="USD", max_length=3, description="Код валюты (ISO 4217)"
    )

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(amount=Decimal("0"), currency=currency)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            raise TypeError("Можно складывать только объекты Money")
        if self.currency != other.currency:
            raise ValueError("Нельзя складывать разные валюты")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __mul__(self, multiplier: Union[int, Decimal]) -> "Money":
        if isinstance(multiplier, bool) or not isinstance(multiplier, (int, Decimal)):
            raise TypeError("Множитель должен быть целым числом или Decimal")
        if multiplier < 0:
            raise ValueError("Множитель не может быть отрицательным")
        return Money(amount=self.amount * multiplier, currency=self.currency)


class DateRange(BaseModel):
    """Диапазон дат поездки."""

    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def end_after_start(self) -> "DateRange":
        if self.end_date <= self.start_date:
            raise ValueError("Дата окончания должна быть позже даты начала")
        return self

    @property
    def days(self) -> int:
        """Длительность пребывания в днях (не меньше одного)."""
        return max(1, (self.end_date - self.start_date).days)


class DomainEvent(BaseModel):
    """Базовый класс для всех доменных событий."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event_id: UUID = Field(default_factory=uuid4)
    occurred_on: datetime = Field(default_factory=lambda: now())
    event_type: str = ""

    def model_post_init(self, __context: Any) -> None:
        if not self.event_type:
            self.event_type = type(self).__name__


# Общие перечисления
class BookingStatus(str, Enum):
    """Статусы бронирования."""

    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    GUIDE_ASSIGNED = "guide_assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ItemType(str, Enum):
    """Типы позиций бронирования."""

    TRANSPORT = "transport"
    HOTEL = "hotel"
    ACTIVITY = "activity"
    TOUR_GUIDE = "tour_guide"
    PLACEHOLDER = "placeholder"


class ProviderStatus(str, Enum):
    """Статус подтверждения позиции поставщиком."""

    PENDING = "pending"
    CONFIRMED = "confirmed"


# Общие исключения
class DomainException(Exception):
    """Базовое исключение для доменных ошибок."""

    pass


class ValidationException(DomainException):
    """Некорректные или неизвестные входные данные. Повторять бессмысленно."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class BusinessRuleValidationException(ValidationException):
    """Исключение при нарушении бизнес-правил (например, недопустимый переход статуса)."""

    pass


class CatalogLookupException(ValidationException):
    """Ссылка на несуществующую запись каталога."""

    def __init__(self, kind: str, entity_id: Any, field: Optional[str] = None):
        super().__init__(f"{kind} {entity_id} не найден в каталоге", field=field)
        self.kind = kind
        self.entity_id = entity_id


class CapacityException(DomainException):
    """Слот активности заполнен. Можно повторить с другим слотом или датой."""

    def __init__(
        self,
        activity_id: EntityId,
        day: date,
        slot_id: int,
        requested: int,
        available: int,
        slot_label: Optional[str] = None,
    ):
        slot = slot_label or str(slot_id)
        super().__init__(
            f"Слот {slot} активности {activity_id} на {day.isoformat()} "
            f"полностью забронирован: запрошено {requested}, свободно {available}"
        )
        self.activity_id = activity_id
        self.date = day
        self.slot_id = slot_id
        self.requested = requested
        self.available = available


class ConflictException(DomainException):
    """Проигранная гонка за ресурс. Следует обновить данные и повторить."""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.resource = resource


class PersistenceException(DomainException):
    """Сбой хранилища. Безопасно повторить всю операцию."""

    pass


# Общие утилиты
def now() -> datetime:
    """Возвращает текущую дату и время (UTC)."""
    return datetime.now(timezone.utc)

