"""
Прикладной слой гидов.

GuideMatcher подбирает гидов для оплаченных бронирований и закрепляет их.
Назначение выполняется в критической секции по идентификатору гида, поэтому
один гид не может быть закреплен за двумя бронированиями одновременно.
Порядок блокировок: сначала гид, затем бронирование.
"""

from typing import List, Optional

from ..booking.application import BookingComposer, BookingDTO
from ..booking.domain import Booking, BookingCancelled
from ..catalog.interfaces import ICatalog
from ..shared_kernel import (
    BookingStatus,
    ConflictException,
    ConsoleLogger,
    EntityId,
    IEventBus,
    ILogger,
    KeyedLock,
    PersistenceException,
    ValidationException,
    now,
)
from . import interfaces as ports
from .domain import Assignment, GuideAvailabilityChanged, GuideProfile


class GuideMatcher:
    """Сервис приложения для подбора и назначения гидов."""

    def __init__(
        self,
        guides: ports.IGuideRepository,
        composer: BookingComposer,
        catalog: ICatalog,
        event_bus: Optional[IEventBus] = None,
        locks: Optional[KeyedLock] = None,
        logger: Optional[ILogger] = None,
    ):
        self._guides = guides
        self._composer = composer
        self._catalog = catalog
        self._event_bus = event_bus
        self._locks = locks or KeyedLock("guide")
        self._logger = logger or ConsoleLogger()

    def _get_guide(self, guide_id: EntityId) -> GuideProfile:
        guide = self._guides.get_by_id(guide_id)
        if guide is None:
            raise ValidationException(f"Гид {guide_id} не найден", field="guide_id")
        return guide

    @staticmethod
    def _check_booking_needs_guide(booking: Booking) -> None:
        if booking.tour_guide_item is None:
            raise ValidationException(
                f"В бронировании {booking.id} нет позиции гида", field="booking_id"
            )
        if booking.status != BookingStatus.CONFIRMED:
            raise ValidationException(
                f"Гида можно подобрать только для оплаченного бронирования без гида, "
                f"текущий статус {booking.status.value}",
                field="booking_id",
            )

    def eligible_guides(self, booking_id: EntityId) -> List[GuideProfile]:
        """
        Свободные гиды, подходящие бронированию.

        Гид подходит, если работает в направлении бронирования или ведет
        хотя бы одну из его активностей. Порядок: по имени, затем по id.
        """
        booking = self._composer.load_booking(booking_id)
        self._check_booking_needs_guide(booking)
        guides = [
            guide
            for guide in self._guides.list_all()
            if guide.available and guide.covers(booking.destination_id, booking.activity_ids)
        ]
        return sorted(guides, key=lambda guide: guide.sort_key)

    def assign(self, booking_id: EntityId, guide_id: EntityId) -> Assignment:
        """
        Закрепляет гида за бронированием.

        Raises:
            ConflictException: гид уже занят или за бронированием уже закреплен гид
            ValidationException: гид или бронирование не подходят
        """
        with self._locks.hold(guide_id):
            guide = self._get_guide(guide_id)
            if not guide.available:
                raise ConflictException(
                    f"Гид {guide.full_name} уже назначен на другое бронирование",
                    resource=f"guide:{guide_id}",
                )

            booking = self._composer.load_booking(booking_id)
            if booking.guide_id is not None:
                raise ConflictException(
                    f"За бронированием {booking_id} уже закреплен гид",
                    resource=f"booking:{booking_id}",
                )
            self._check_booking_needs_guide(booking)
            if not guide.covers(booking.destination_id, booking.activity_ids):
                raise ValidationException(
                    f"Гид {guide.full_name} не работает с этим бронированием", field="guide_id"
                )

            item = self._composer.attach_guide(booking_id, guide_id, guide.full_name)
            guide.available = False
            try:
                self._guides.save(guide)
            except PersistenceException:
                self._composer.detach_guide(booking_id, guide_id)
                raise

        self._logger.info(
            "Гид назначен", booking_id=str(booking_id), guide_id=str(guide_id)
        )
        self._publish_availability(guide)
        return Assignment(
            booking_id=booking_id,
            guide_id=guide_id,
            guide_name=guide.full_name,
            item_id=item.id,
            assigned_at=now(),
        )

    def unassign(self, booking_id: EntityId) -> GuideProfile:
        """Снимает гида с бронирования и возвращает ему доступность."""
        booking = self._composer.load_booking(booking_id)
        guide_id = booking.guide_id
        if guide_id is None:
            raise ValidationException(
                f"За бронированием {booking_id} не закреплен гид", field="booking_id"
            )

        with self._locks.hold(guide_id):
            self._composer.detach_guide(booking_id, guide_id)
            guide = self._get_guide(guide_id)
            guide.available = True
            self._guides.save(guide)

        self._logger.info("Гид снят", booking_id=str(booking_id), guide_id=str(guide_id))
        self._publish_availability(guide)
        return guide

    def release_guide(self, event: BookingCancelled) -> None:
        """Обработчик отмены бронирования: освобождает закрепленного гида."""
        if event.guide_id is None:
            return
        with self._locks.hold(event.guide_id):
            guide = self._guides.get_by_id(event.guide_id)
            if guide is None or guide.available:
                return
            # Событие могло прийти после того, как гида закрепили за другим бронированием
            if self._composer.bookings_for_guide(event.guide_id):
                self._logger.info(
                    "Гид занят другим бронированием, доступность не меняется",
                    booking_id=str(event.booking_id),
                    guide_id=str(event.guide_id),
                )
                return
            guide.available = True
            self._guides.save(guide)

        self._logger.info(
            "Гид освобожден после отмены бронирования",
            booking_id=str(event.booking_id),
            guide_id=str(event.guide_id),
        )
        self._publish_availability(guide)

    def set_availability(self, guide_id: EntityId, available: bool) -> GuideProfile:
        """
        Гид сам меняет свою доступность.

        Вернуть доступность, пока гид закреплен за бронированием, нельзя.
        """
        with self._locks.hold(guide_id):
            guide = self._get_guide(guide_id)
            if guide.available == available:
                return guide
            if available and self._composer.bookings_for_guide(guide_id):
                raise ConflictException(
                    f"Гид {guide.full_name} закреплен за бронированием",
                    resource=f"guide:{guide_id}",
                )
            guide.available = available
            self._guides.save(guide)

        self._publish_availability(guide)
        return guide

    def register_guide(self, profile: GuideProfile) -> GuideProfile:
        """
        Создает или обновляет профиль гида.

        Направление и активности должны существовать в каталоге, активности
        должны относиться к направлению гида, если оно указано.
        """
        if profile.destination_id is not None:
            self._catalog.get_destination(profile.destination_id)
        for index, activity_id in enumerate(profile.activity_ids):
            activity = self._catalog.get_activity(activity_id)
            if profile.destination_id is not None and activity.destination_id != profile.destination_id:
                raise ValidationException(
                    f"Активность {activity.name} не относится к направлению гида",
                    field=f"activity_ids[{index}]",
                )

        with self._locks.hold(profile.user_id):
            existing = self._guides.get_by_id(profile.user_id)
            if existing is not None:
                # Доступность меняется только назначением и set_availability
                profile = profile.model_copy(update={"available": existing.available})
            self._guides.save(profile)

        self._logger.info(
            "Профиль гида сохранен",
            guide_id=str(profile.user_id),
            created=existing is None,
        )
        return profile

    def get_guide(self, guide_id: EntityId) -> GuideProfile:
        return self._get_guide(guide_id)

    def list_guides(self, only_available: bool = False) -> List[GuideProfile]:
        guides = [g for g in self._guides.list_all() if g.available or not only_available]
        return sorted(guides, key=lambda guide: guide.sort_key)

    def active_assignments(self, guide_id: EntityId) -> List[BookingDTO]:
        """Бронирования, за которыми гид закреплен сейчас."""
        self._get_guide(guide_id)
        return self._composer.bookings_for_guide(guide_id)

    def _publish_availability(self, guide: GuideProfile) -> None:
        if self._event_bus is None:
            return
        self._event_bus.publish(
            GuideAvailabilityChanged(guide_id=guide.user_id, available=guide.available)
        )
