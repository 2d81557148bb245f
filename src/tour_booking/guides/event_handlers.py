from ..booking.domain import BookingCancelled
from .application import GuideMatcher


def on_booking_cancelled(event: BookingCancelled, service: "GuideMatcher") -> None:
    """Обработчик отмены бронирования: освобождает закрепленного гида."""
    service.release_guide(event)
