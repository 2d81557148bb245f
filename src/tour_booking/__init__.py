"""
Движок сборки бронирований туров и учета доступности ресурсов.

Ограниченные контексты:
- catalog: справочные данные (направления, активности, транспорт, отели)
- availability: учет мест в слотах активностей
- booking: расчет стоимости, создание бронирования и его жизненный цикл
- guides: подбор и назначение гидов
"""

__version__ = "0.1.0"
