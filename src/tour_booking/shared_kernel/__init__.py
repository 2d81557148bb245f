"""
Общее ядро (Shared Kernel) движка бронирования туров.

Содержит общие типы данных и утилиты, используемые в различных ограниченных контекстах.
"""

from .domain import (
    BookingStatus,
    BusinessRuleValidationException,
    CapacityException,
    CatalogLookupException,
    ConflictException,
    DateRange,
    DomainEvent,
    # Исключения
    DomainException,
    # Базовые типы
    EntityId,
    ItemType,
    # Основные классы
    Money,
    PersistenceException,
    ProviderStatus,
    ValidationException,
    generate_id,
    # Утилиты
    now,
)
from .infrastructure import ConsoleLogger, InMemoryEventBus, JsonFileStore, KeyedLock
from .interfaces import IEventBus, ILogger

__all__ = [
    # Базовые типы
    "EntityId",
    "generate_id",
    # Основные классы
    "Money",
    "DateRange",
    "DomainEvent",
    # Перечисления
    "BookingStatus",
    "ItemType",
    "ProviderStatus",
    # Исключения
    "DomainException",
    "ValidationException",
    "BusinessRuleValidationException",
    "CatalogLookupException",
    "CapacityException",
    "ConflictException",
    "PersistenceException",
    # Порты и инфраструктура
    "ILogger",
    "IEventBus",
    "ConsoleLogger",
    "InMemoryEventBus",
    "KeyedLock",
    "JsonFileStore",
    # Утилиты
    "now",
]
