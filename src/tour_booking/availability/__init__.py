"""
Модуль учета доступности (Availability Context).

Отвечает за резервирование мест в слотах активностей:
- Атомарную проверку вместимости и резервирование
- Освобождение резервирований при отмене
- Запрос текущей доступности слота
"""

from . import application, domain, infrastructure, interfaces

__all__ = [
    'domain',
    'application',
    'infrastructure',
    'interfaces',
]
