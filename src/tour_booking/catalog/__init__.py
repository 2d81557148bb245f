"""
Модуль каталога (Catalog Context).

Справочные данные только для чтения, которые движок бронирования использует
при проверке запросов и расчете стоимости.
"""

from . import domain, infrastructure, interfaces

__all__ = [
    'domain',
    'infrastructure',
    'interfaces',
]
