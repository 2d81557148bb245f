"""
Модуль гидов (Guides Context).

Отвечает за профили гидов и их назначение на оплаченные бронирования:
- Подбор подходящих свободных гидов
- Эксклюзивное назначение и снятие гида
"""

from . import application, domain, event_handlers, infrastructure, interfaces

__all__ = [
    'domain',
    'application',
    'event_handlers',
    'infrastructure',
    'interfaces',
]
