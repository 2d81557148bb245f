"""
Расчет стоимости бронирования.

Флаги include_* являются решающими: выключенная категория не попадает
в расчет, даже если в запросе указан идентификатор.
"""

from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..catalog.interfaces import ICatalog
from ..shared_kernel import DateRange, EntityId, ItemType, Money, ValidationException

if TYPE_CHECKING:
    from .application import SubmitBookingRequest

DESTINATION_LINE = "destination"

# Необязательные категории и имена флагов в запросе
OPTIONAL_CATEGORIES = (
    ("transport", "include_transport"),
    ("hotel", "include_hotel"),
    ("activities", "include_activities"),
)


class CostLine(BaseModel):
    """Строка расчета стоимости."""

    kind: str
    reference_id: Optional[EntityId] = None
    description: str
    quantity: int = 1
    unit_price: Money
    cost: Money
    details: Dict[str, Any] = Field(default_factory=dict)


class CostBreakdown(BaseModel):
    """Итоговый расчет: сумма и строки, из которых строятся позиции бронирования."""

    total: Money
    days: int
    lines: List[CostLine] = Field(default_factory=list)

    def lines_of(self, kind: str) -> List[CostLine]:
        return [line for line in self.lines if line.kind == kind]


def excluded_categories(request: "SubmitBookingRequest") -> List[str]:
    return [name for name, flag in OPTIONAL_CATEGORIES if not getattr(request, flag)]


class PricingCalculator:
    """Калькулятор стоимости бронирования."""

    def __init__(self, currency: str = "USD"):
        self.currency = currency

    def _line(
        self,
        kind: str,
        description: str,
        unit_price: Money,
        quantity: int = 1,
        reference_id: Optional[EntityId] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> CostLine:
        if unit_price.currency != self.currency:
            raise ValidationException(
                f"Цена {description} указана в {unit_price.currency}, "
                f"ожидается {self.currency}",
                field=kind,
            )
        return CostLine(
            kind=kind,
            reference_id=reference_id,
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            cost=unit_price * quantity,
            details=details or {},
        )

    def compute_cost(self, request: "SubmitBookingRequest", catalog: ICatalog) -> CostBreakdown:
        """
        Рассчитывает стоимость по запросу.

        Стоимость складывается из дневной ставки направления, транспорта,
        отеля (ночи умножаются на цену за ночь, минимум одна ночь) и
        активностей (цена за участника). Гид и заглушка стоят 0.

        Raises:
            ValidationException: если период некорректен или количество участников не положительно
            CatalogLookupException: если идентификатор не найден в каталоге
        """
        period = self._period(request.start_date, request.end_date)
        days = period.days
        lines: List[CostLine] = []

        if request.destination_id is not None:
            destination = catalog.get_destination(request.destination_id)
            lines.append(
                self._line(
                    DESTINATION_LINE,
                    f"Направление {destination.name}",
                    destination.day_rate,
                    quantity=days,
                    reference_id=destination.id,
                )
            )

        if request.include_transport and request.transport_id is not None:
            route = catalog.get_transport_route(request.transport_id)
            lines.append(
                self._line(
                    ItemType.TRANSPORT.value,
                    f"{route.transportation_type}: {route.origin}",
                    route.cost,
                    reference_id=route.id,
                    details={
                        "origin": route.origin,
                        "transportation_type": route.transportation_type,
                    },
                )
            )

        if request.include_hotel and request.hotel_id is not None:
            hotel = catalog.get_hotel(request.hotel_id)
            lines.append(
                self._line(
                    ItemType.HOTEL.value,
                    f"Отель {hotel.name}",
                    hotel.base_price_per_night,
                    quantity=days,
                    reference_id=hotel.id,
                    details={"hotel_name": hotel.name, "nights": days},
                )
            )

        activity_lines = []
        if request.include_activities:
            for index, selection in enumerate(request.activities):
                if selection.participants <= 0:
                    raise ValidationException(
                        "Количество участников должно быть положительным",
                        field=f"activities[{index}].participants",
                    )
                activity = catalog.get_activity(selection.activity_id)
                activity_lines.append(
                    self._line(
                        ItemType.ACTIVITY.value,
                        activity.name,
                        activity.price,
                        quantity=selection.participants,
                        reference_id=activity.id,
                        details={
                            "activity_name": activity.name,
                            "date": selection.date.isoformat(),
                            "slot_id": selection.slot_id,
                            "participants": selection.participants,
                        },
                    )
                )
        lines.extend(activity_lines)

        if activity_lines:
            lines.append(
                self._line(
                    ItemType.TOUR_GUIDE.value,
                    "Гид (назначается после оплаты)",
                    Money.zero(self.currency),
                )
            )

        excluded = excluded_categories(request)
        if excluded:
            lines.append(
                self._line(
                    ItemType.PLACEHOLDER.value,
                    "Без: " + ", ".join(excluded),
                    Money.zero(self.currency),
                    details={"excluded": excluded},
                )
            )

        total = Money.zero(self.currency)
        for line in lines:
            total = total + line.cost
        return CostBreakdown(total=total, days=days, lines=lines)

    @staticmethod
    def _period(start_date: date, end_date: date) -> DateRange:
        if end_date <= start_date:
            raise ValidationException(
                "Дата окончания должна быть позже даты начала", field="end_date"
            )
        return DateRange(start_date=start_date, end_date=end_date)

