from datetime import date

import structlog
from fastapi import APIRouter, Depends

from tablebook.app.core.errors import DomainRejection, NotFound
from tablebook.app.core.logging_setup import mask_phone
from tablebook.app.routers.deps import get_booking_request, get_reservation_service, get_today
from tablebook.app.routers.schemas import (
    BookingRequest,
    CancelReservationOut,
    CreateReservationOut,
    ReservationLookupOut,
    rejection_fields,
)
from tablebook.app.services.reservations import ReservationService
from tablebook.app.services.times import to_wall_clock


router = APIRouter()
logger = structlog.get_logger()


def _clock_text(minutes: int | None) -> str | None:
    return to_wall_clock(minutes) if minutes is not None else None


@router.post("/create-reservation", response_model=CreateReservationOut, response_model_exclude_none=True)
async def create_reservation(
    payload: BookingRequest = Depends(get_booking_request),
    service: ReservationService = Depends(get_reservation_service),
    today: date = Depends(get_today),
) -> CreateReservationOut:
    logger.info(
        "Tool: create_reservation",
        date=payload.date,
        time=payload.time,
        guests=payload.guests,
        phone=mask_phone(payload.phone),
    )

    try:
        booking = await service.create_reservation(
            raw_date=payload.date,
            raw_time=payload.time,
            party_size=payload.guests,
            name=payload.name,
            phone=payload.phone,
            today=today,
            request_key=payload.request_key,
        )
    except DomainRejection as exc:
        fields = rejection_fields(exc)
        fields.update(reason="not_available", cause=exc.code)
        return CreateReservationOut.model_validate({"success": False, **fields})

    reservation = booking.reservation
    return CreateReservationOut(
        success=True,
        reservation_id=reservation.id,
        date=reservation.day.isoformat(),
        time=_clock_text(reservation.start_minutes),
        end_time=_clock_text(booking.end_minutes),
        guests=reservation.party_size,
        name=reservation.name or None,
        remaining_seats=booking.remaining_seats,
        replayed=booking.replayed or None,
    )


@router.post("/cancel-reservation", response_model=CancelReservationOut, response_model_exclude_none=True)
async def cancel_reservation(
    payload: BookingRequest = Depends(get_booking_request),
    service: ReservationService = Depends(get_reservation_service),
    today: date = Depends(get_today),
) -> CancelReservationOut:
    logger.info(
        "Tool: cancel_reservation",
        reservation_id=payload.reservation_id,
        date=payload.date,
        time=payload.time,
        phone=mask_phone(payload.phone),
    )

    try:
        cancelled = await service.cancel_reservation(
            reservation_id=payload.reservation_id,
            raw_date=payload.date,
            raw_time=payload.time,
            phone=payload.phone,
            today=today,
        )
    except NotFound as exc:
        return CancelReservationOut.model_validate({"success": False, **rejection_fields(exc)})

    return CancelReservationOut(
        success=True,
        reservation_id=cancelled.id,
        date=cancelled.day.isoformat(),
        time=_clock_text(cancelled.start_minutes),
    )


@router.post("/get-reservation-by-phone", response_model=ReservationLookupOut, response_model_exclude_none=True)
async def get_reservation_by_phone(
    payload: BookingRequest = Depends(get_booking_request),
    service: ReservationService = Depends(get_reservation_service),
    today: date = Depends(get_today),
) -> ReservationLookupOut:
    logger.info("Tool: get_reservation_by_phone", phone=mask_phone(payload.phone))

    try:
        found = await service.find_by_phone(payload.phone, today)
    except NotFound as exc:
        return ReservationLookupOut(success=False, reason=exc.code, message=exc.message)

    return ReservationLookupOut(
        success=True,
        reservation_id=found.id,
        date=found.day.isoformat(),
        time=_clock_text(found.start_minutes),
        name=found.name or None,
        guests=found.party_size,
    )
