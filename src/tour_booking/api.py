"""
HTTP-интерфейс движка бронирования (FastAPI).

Маршруты только переводят HTTP в вызовы сервисов приложения. Доменные
исключения преобразуются в ответы обработчиками из setup_exception_handlers.
"""

from datetime import date
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .availability.application import AvailabilityLedger
from .booking.application import (
    BookingComposer,
    BookingDTO,
    ProviderWorkItem,
    SubmissionResult,
)
from .bootstrap import bootstrap_app
from .config import get_settings
from .guides.application import GuideMatcher
from .guides.domain import Assignment, GuideProfile
from .shared_kernel import (
    BookingStatus,
    CapacityException,
    ConflictException,
    DomainException,
    EntityId,
    ItemType,
    PersistenceException,
    ValidationException,
)


class AssignGuideRequest(BaseModel):
    guide_id: EntityId


class ConfirmItemRequest(BaseModel):
    details: Dict[str, Any] = Field(default_factory=dict)


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class GuideAvailabilityRequest(BaseModel):
    available: bool


def _error(status_code: int, exc: Exception, **extra) -> JSONResponse:
    content = {"error": type(exc).__name__, "message": str(exc)}
    content.update(extra)
    return JSONResponse(content=content, status_code=status_code)


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationException)
    async def validation_exception_handler(request: Request, exc: ValidationException):
        return _error(400, exc, field=exc.field)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = ".".join(str(part) for part in errors[0]["loc"]) if errors else None
        return JSONResponse(
            content={"error": "ValidationException", "message": str(exc), "field": field},
            status_code=400,
        )

    @app.exception_handler(CapacityException)
    async def capacity_exception_handler(request: Request, exc: CapacityException):
        return _error(
            409,
            exc,
            activity_id=str(exc.activity_id),
            date=exc.date.isoformat(),
            slot_id=exc.slot_id,
            requested=exc.requested,
            available=exc.available,
        )

    @app.exception_handler(ConflictException)
    async def conflict_exception_handler(request: Request, exc: ConflictException):
        return _error(409, exc, resource=exc.resource)

    @app.exception_handler(PersistenceException)
    async def persistence_exception_handler(request: Request, exc: PersistenceException):
        return _error(503, exc)

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        return _error(400, exc)


def get_composer(request: Request) -> BookingComposer:
    return request.app.state.container["composer"]


def get_ledger(request: Request) -> AvailabilityLedger:
    return request.app.state.container["ledger"]


def get_matcher(request: Request) -> GuideMatcher:
    return request.app.state.container["matcher"]


def create_app(container: Optional[Dict[str, Any]] = None) -> FastAPI:
    """Создает приложение FastAPI поверх настроенных сервисов."""
    app = FastAPI(title="Tour Booking Engine")
    app.state.container = container or bootstrap_app()
    setup_exception_handlers(app)

    # Бронирования

    @app.post("/bookings", status_code=201, response_model=SubmissionResult)
    def submit_booking(
        payload: Dict[str, Any] = Body(...),
        composer: BookingComposer = Depends(get_composer),
    ):
        return composer.submit(payload)

    @app.get("/bookings", response_model=List[BookingDTO])
    def list_bookings(
        tourist_id: Optional[EntityId] = None,
        status: Optional[BookingStatus] = None,
        composer: BookingComposer = Depends(get_composer),
    ):
        return composer.list_bookings(tourist_id=tourist_id, status=status)

    @app.post("/bookings/expired/cancel", response_model=List[EntityId])
    def cancel_expired(composer: BookingComposer = Depends(get_composer)):
        return composer.cancel_expired()

    @app.get("/bookings/unassigned", response_model=List[BookingDTO])
    def unassigned_bookings(composer: BookingComposer = Depends(get_composer)):
        return composer.unassigned_bookings()

    @app.get("/bookings/{booking_id}", response_model=BookingDTO)
    def get_booking(booking_id: EntityId, composer: BookingComposer = Depends(get_composer)):
        return composer.get_booking(booking_id)

    @app.post("/bookings/{booking_id}/payment-confirmed", response_model=BookingDTO)
    def payment_confirmed(
        booking_id: EntityId, composer: BookingComposer = Depends(get_composer)
    ):
        return composer.on_payment_confirmed(booking_id)

    @app.post("/bookings/{booking_id}/payment-failed", response_model=BookingDTO)
    def payment_failed(booking_id: EntityId, composer: BookingComposer = Depends(get_composer)):
        return composer.on_payment_failed(booking_id)

    @app.post("/bookings/{booking_id}/cancel", response_model=BookingDTO)
    def cancel_booking(
        booking_id: EntityId,
        payload: Optional[CancelRequest] = None,
        composer: BookingComposer = Depends(get_composer),
    ):
        reason = payload.reason if payload is not None else None
        return composer.cancel(booking_id, reason=reason or "cancelled_by_tourist")

    # Задачи поставщиков

    @app.get("/booking-items/needing-action", response_model=List[ProviderWorkItem])
    def items_needing_action(
        item_type: ItemType,
        reference_id: Optional[EntityId] = None,
        composer: BookingComposer = Depends(get_composer),
    ):
        return composer.items_needing_action(item_type, reference_id=reference_id)

    @app.get("/booking-items/fulfilled", response_model=List[ProviderWorkItem])
    def fulfilled_items(
        item_type: ItemType,
        reference_id: Optional[EntityId] = None,
        composer: BookingComposer = Depends(get_composer),
    ):
        return composer.fulfilled_items(item_type, reference_id=reference_id)

    @app.post("/booking-items/{item_id}/confirm", response_model=BookingDTO)
    def confirm_item(
        item_id: EntityId,
        payload: ConfirmItemRequest,
        composer: BookingComposer = Depends(get_composer),
    ):
        return composer.confirm_item(item_id, payload.details)

    # Доступность

    @app.get("/activities/{activity_id}/availability")
    def activity_availability(
        activity_id: EntityId,
        day: date = Query(..., alias="date"),
        slot_id: Optional[int] = Query(None, ge=0),
        ledger: AvailabilityLedger = Depends(get_ledger),
    ):
        if slot_id is None:
            return ledger.list_slots(activity_id, day)
        return ledger.query(activity_id, day, slot_id)

    # Гиды

    @app.get("/bookings/{booking_id}/eligible-guides", response_model=List[GuideProfile])
    def eligible_guides(booking_id: EntityId, matcher: GuideMatcher = Depends(get_matcher)):
        return matcher.eligible_guides(booking_id)

    @app.post("/bookings/{booking_id}/guide", response_model=Assignment)
    def assign_guide(
        booking_id: EntityId,
        payload: AssignGuideRequest,
        matcher: GuideMatcher = Depends(get_matcher),
    ):
        return matcher.assign(booking_id, payload.guide_id)

    @app.delete("/bookings/{booking_id}/guide", response_model=GuideProfile)
    def unassign_guide(booking_id: EntityId, matcher: GuideMatcher = Depends(get_matcher)):
        return matcher.unassign(booking_id)

    @app.get("/guides", response_model=List[GuideProfile])
    def list_guides(
        only_available: bool = False, matcher: GuideMatcher = Depends(get_matcher)
    ):
        return matcher.list_guides(only_available=only_available)

    @app.put("/guides", response_model=GuideProfile)
    def register_guide(profile: GuideProfile, matcher: GuideMatcher = Depends(get_matcher)):
        return matcher.register_guide(profile)

    @app.put("/guides/{guide_id}/availability", response_model=GuideProfile)
    def set_guide_availability(
        guide_id: EntityId,
        payload: GuideAvailabilityRequest,
        matcher: GuideMatcher = Depends(get_matcher),
    ):
        return matcher.set_availability(guide_id, payload.available)

    @app.get("/guides/{guide_id}/assignments", response_model=List[BookingDTO])
    def guide_assignments(guide_id: EntityId, matcher: GuideMatcher = Depends(get_matcher)):
        return matcher.active_assignments(guide_id)

    return app


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
