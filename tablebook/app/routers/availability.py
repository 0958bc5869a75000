from datetime import date

import structlog
from fastapi import APIRouter, Depends

from tablebook.app.core.errors import DomainRejection
from tablebook.app.routers.deps import get_booking_request, get_reservation_service, get_today
from tablebook.app.routers.schemas import AvailabilityCheckOut, BookingRequest, rejection_fields
from tablebook.app.services.reservations import ReservationService, latest_start
from tablebook.app.services.times import to_wall_clock

router = APIRouter()
logger = structlog.get_logger()


@router.post("/check-availability", response_model=AvailabilityCheckOut, response_model_exclude_none=True)
async def check_availability(
    payload: BookingRequest = Depends(get_booking_request),
    service: ReservationService = Depends(get_reservation_service),
    today: date = Depends(get_today),
) -> AvailabilityCheckOut:
    logger.info("Tool: check_availability", date=payload.date, time=payload.time, guests=payload.guests)

    try:
        result = await service.check_availability(
            raw_date=payload.date,
            raw_time=payload.time,
            party_size=payload.guests,
            today=today,
        )
    except DomainRejection as exc:
        return AvailabilityCheckOut.model_validate(
            {"available": False, "remainingSeats": 0, **rejection_fields(exc)}
        )

    capacity = result.capacity
    window = result.window
    last = latest_start(window, service.slot_duration_minutes)
    return AvailabilityCheckOut(
        available=capacity.available,
        remaining_seats=capacity.remaining_seats,
        occupied_guests=capacity.occupied_guests,
        reason=None if capacity.available else "capacity_exceeded",
        date=result.day.isoformat(),
        time=to_wall_clock(result.start_minutes),
        opening_time=to_wall_clock(window.open_minutes),
        closing_time=to_wall_clock(window.close_minutes),
        latest_start=to_wall_clock(last) if last is not None else None,
    )
