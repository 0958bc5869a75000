from dataclasses import dataclass
from datetime import date

import structlog

from tablebook.app.core.config import BookingPolicy
from tablebook.app.core.errors import (
    CapacityExceeded,
    ClosedOnDate,
    InvalidRequest,
    NotFound,
    OutsideOpeningHours,
)
from tablebook.app.core.logging_setup import mask_phone
from tablebook.app.db.repositories import ReservationRepository, digits
from tablebook.app.services.capacity import CapacityEngine
from tablebook.app.services.dates import normalize_date
from tablebook.app.services.opening_hours import OpeningHoursResolver
from tablebook.app.services.slot_guard import SlotGuard
from tablebook.app.services.times import MINUTES_PER_DAY, parse_request_time, to_wall_clock
from tablebook.app.services.types import CapacityCheck, OpeningWindow, Reservation, ReservationDraft


logger = structlog.get_logger()


@dataclass(frozen=True)
class Availability:
    day: date
    start_minutes: int
    window: OpeningWindow
    capacity: CapacityCheck


@dataclass(frozen=True)
class Booking:
    reservation: Reservation
    end_minutes: int | None
    remaining_seats: int | None
    replayed: bool = False


def latest_start(window: OpeningWindow, duration: int) -> int | None:
    """Last start time that still finishes by closing, or None if no slot fits."""
    if window.closed:
        return None
    latest = window.close_minutes - duration
    return latest if latest >= window.open_minutes else None


def require_open(window: OpeningWindow, start: int, duration: int, day: date) -> None:
    if window.closed:
        raise ClosedOnDate(
            f"Closed on {day.isoformat()}",
            date=day.isoformat(),
            closedReason=window.reason,
        )
    last = latest_start(window, duration)
    if last is None or not window.open_minutes <= start <= last:
        raise OutsideOpeningHours(
            f"{to_wall_clock(start)} is outside bookable hours",
            date=day.isoformat(),
            time=to_wall_clock(start),
            openingTime=to_wall_clock(window.open_minutes),
            closingTime=to_wall_clock(window.close_minutes),
            latestStart=to_wall_clock(last) if last is not None else None,
        )


def pick_cancellation_target(
    candidates: list[Reservation],
    start: int | None,
    phone: str | None,
) -> Reservation | None:
    """Choose which confirmed reservation a (date, time, phone) cancel refers to.

    Exact start time wins; with a matching phone any reservation of that day is
    acceptable. Ties go to the oldest record.
    """
    wanted_phone = digits(phone)
    if wanted_phone:
        candidates = [c for c in candidates if digits(c.phone) == wanted_phone]

    pool = [c for c in candidates if start is not None and c.start_minutes == start]
    if not pool and wanted_phone:
        pool = candidates
    if not pool:
        return None
    return min(pool, key=Reservation.sort_key)


def _require_party(party_size: int | None) -> int:
    if party_size is None or party_size < 1:
        raise InvalidRequest("Party size must be a positive number", field="guests")
    return party_size


class ReservationService:
    """Check, create, look up and cancel reservations."""

    def __init__(
        self,
        reservations: ReservationRepository,
        opening_hours: OpeningHoursResolver,
        engine: CapacityEngine,
        guard: SlotGuard,
        policy: BookingPolicy,
    ) -> None:
        self._reservations = reservations
        self._opening_hours = opening_hours
        self._engine = engine
        self._guard = guard
        self._policy = policy

    @property
    def slot_duration_minutes(self) -> int:
        return self._policy.slot_duration_minutes

    async def check_availability(
        self,
        *,
        raw_date: str | None,
        raw_time: str | None,
        party_size: int | None,
        today: date,
    ) -> Availability:
        """Raises ClosedOnDate / OutsideOpeningHours; a full slot is a normal result."""
        day = normalize_date(raw_date, today)
        start = parse_request_time(raw_time)
        party_size = _require_party(party_size)

        window = await self._opening_hours.resolve(day)
        require_open(window, start, self._policy.slot_duration_minutes, day)

        capacity = await self._engine.check_capacity(day, start, party_size)
        return Availability(day=day, start_minutes=start, window=window, capacity=capacity)

    async def create_reservation(
        self,
        *,
        raw_date: str | None,
        raw_time: str | None,
        party_size: int | None,
        name: str | None,
        phone: str | None,
        today: date,
        request_key: str | None = None,
    ) -> Booking:
        duration = self._policy.slot_duration_minutes

        if request_key:
            previous = await self._replay(request_key)
            if previous is not None:
                return previous

        availability = await self.check_availability(
            raw_date=raw_date,
            raw_time=raw_time,
            party_size=party_size,
            today=today,
        )
        day, start = availability.day, availability.start_minutes
        party_size = _require_party(party_size)
        if not availability.capacity.available:
            raise self._capacity_exceeded(availability.capacity, day, start)

        async with self._guard.hold(day):
            if request_key:
                previous = await self._replay(request_key)
                if previous is not None:
                    return previous

            # the store has no conditional write: re-check right before inserting
            capacity = await self._engine.check_capacity(day, start, party_size)
            if not capacity.available:
                raise self._capacity_exceeded(capacity, day, start)

            reservation = await self._reservations.insert(
                ReservationDraft(
                    day=day,
                    start_minutes=start,
                    end_minutes=start + duration,
                    party_size=party_size,
                    name=(name or "").strip(),
                    phone=(phone or "").strip(),
                    request_key=request_key,
                )
            )

        logger.info(
            "Reservation created",
            reservation_id=reservation.id,
            day=day.isoformat(),
            time=to_wall_clock(start),
            party_size=party_size,
            phone=mask_phone(phone),
        )
        return Booking(
            reservation=reservation,
            end_minutes=start + duration,
            remaining_seats=max(0, capacity.remaining_seats - party_size),
        )

    async def _replay(self, request_key: str) -> Booking | None:
        previous = await self._reservations.find_by_request_key(request_key)
        if previous is None or not self._reservations.is_confirmed(previous):
            return None
        logger.info("Create replayed", reservation_id=previous.id, request_key=request_key)
        end = None
        if previous.start_minutes is not None:
            end = previous.start_minutes + self._policy.slot_duration_minutes
            if end > MINUTES_PER_DAY:
                end = None
        # seats left now are not what the first answer reported; leave them out
        return Booking(reservation=previous, end_minutes=end, remaining_seats=None, replayed=True)

    def _capacity_exceeded(self, capacity: CapacityCheck, day: date, start: int) -> CapacityExceeded:
        return CapacityExceeded(
            "Not enough seats left for this time",
            date=day.isoformat(),
            time=to_wall_clock(start),
            occupiedGuests=capacity.occupied_guests,
            remainingSeats=capacity.remaining_seats,
            maxCapacity=self._policy.max_capacity,
        )

    async def cancel_reservation(
        self,
        *,
        reservation_id: str | None,
        raw_date: str | None,
        raw_time: str | None,
        phone: str | None,
        today: date,
    ) -> Reservation:
        if reservation_id:
            target = await self._reservations.get(reservation_id)
            if target is None or not self._reservations.is_confirmed(target):
                raise NotFound("No open reservation with that id", reservationId=reservation_id)
        else:
            target = await self._find_by_details(raw_date, raw_time, phone, today)

        await self._reservations.mark_cancelled(target.id)
        logger.info("Reservation cancelled", reservation_id=target.id, day=target.day.isoformat())
        return target

    async def _find_by_details(
        self,
        raw_date: str | None,
        raw_time: str | None,
        phone: str | None,
        today: date,
    ) -> Reservation:
        if not raw_date:
            raise InvalidRequest("Either reservationId or date is required", field="date")
        day = normalize_date(raw_date, today)
        start = parse_request_time(raw_time) if raw_time else None
        if start is None and not digits(phone):
            raise InvalidRequest("A time or phone number is needed to find the reservation", field="time")

        candidates = await self._reservations.list_confirmed(day)
        target = pick_cancellation_target(candidates, start, phone)
        if target is None:
            raise NotFound("No matching reservation", date=day.isoformat())
        return target

    async def find_by_phone(self, phone: str | None, today: date) -> Reservation:
        """Earliest upcoming confirmed reservation for a caller."""
        wanted = digits(phone)
        if not wanted:
            raise InvalidRequest("No phone number available", field="phone")

        upcoming = [
            r for r in await self._reservations.list_confirmed_since(today)
            if digits(r.phone) == wanted
        ]
        if not upcoming:
            raise NotFound("No reservation found for this number")
        return min(upcoming, key=lambda r: (r.day, r.start_minutes or 0, r.sort_key()))
