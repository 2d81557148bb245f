"""
Модуль бронирований (Booking Context).

Отвечает за жизненный цикл бронирования:
- Расчет стоимости и создание бронирования
- Оплату, отмену и подтверждение позиций поставщиками
- Закрепление гида за бронированием
"""

from . import application, domain, infrastructure, interfaces, pricing

__all__ = [
    'domain',
    'application',
    'infrastructure',
    'interfaces',
    'pricing',
]
