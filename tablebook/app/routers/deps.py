from datetime import date, datetime
from zoneinfo import ZoneInfo

from fastapi import Depends, Request

from tablebook.app.core import redis_client as redis_module
from tablebook.app.core.config import BookingPolicy, policy, settings
from tablebook.app.core.errors import InvalidRequest
from tablebook.app.db.repositories import ReservationRepository, ScheduleRepository
from tablebook.app.db.session import get_store
from tablebook.app.db.store import RecordStore
from tablebook.app.routers.payloads import parse_booking_request
from tablebook.app.routers.schemas import BookingRequest
from tablebook.app.services.capacity import CapacityEngine
from tablebook.app.services.opening_hours import OpeningHoursResolver
from tablebook.app.services.reservations import ReservationService
from tablebook.app.services.slot_guard import SlotGuard


def get_today() -> date:
    """The restaurant's current calendar date."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def get_policy() -> BookingPolicy:
    return policy


def get_guard() -> SlotGuard:
    return SlotGuard(
        redis_module.redis_client,
        ttl_seconds=settings.SLOT_GUARD_TTL_SECONDS,
        wait_seconds=settings.SLOT_GUARD_WAIT_SECONDS,
    )


def get_reservation_service(
    store: RecordStore = Depends(get_store),
    guard: SlotGuard = Depends(get_guard),
    booking_policy: BookingPolicy = Depends(get_policy),
) -> ReservationService:
    reservations = ReservationRepository(
        store,
        table=settings.RESERVATIONS_TABLE,
        status_confirmed=settings.STATUS_CONFIRMED,
        status_cancelled=settings.STATUS_CANCELLED,
        end_field=settings.RESERVATION_END_FIELD,
        request_key_field=settings.RESERVATION_REQUEST_KEY_FIELD,
    )
    schedule = ScheduleRepository(
        store,
        hours_table=settings.OPENING_HOURS_TABLE,
        exceptions_table=settings.DATE_EXCEPTIONS_TABLE,
    )
    return ReservationService(
        reservations,
        OpeningHoursResolver(schedule),
        CapacityEngine(reservations, booking_policy),
        guard,
        booking_policy,
    )


async def get_booking_request(request: Request) -> BookingRequest:
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidRequest("Request body is not valid JSON") from exc
    return parse_booking_request(body)
