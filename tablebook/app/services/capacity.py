"""Overlap and capacity engine.

Every reservation occupies the half-open interval [start, start + duration)
with one site-wide duration. Seats in use at a candidate slot are the summed
party sizes of all confirmed reservations whose interval overlaps it.
"""
from collections.abc import Iterable
from datetime import date
from typing import Protocol

import structlog

from tablebook.app.core.config import BookingPolicy
from tablebook.app.services.times import MINUTES_PER_DAY
from tablebook.app.services.types import CapacityCheck, Reservation


logger = structlog.get_logger()


class ConfirmedReservations(Protocol):
    async def list_confirmed(self, day: date) -> list[Reservation]: ...


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """[a_start, a_end) and [b_start, b_end) share an instant; touching ends do not count."""
    return a_start < b_end and a_end > b_start


def occupied_guests(reservations: Iterable[Reservation], start: int, duration: int) -> int:
    end = start + duration
    total = 0
    for reservation in reservations:
        if reservation.start_minutes is None:
            # unknown start: it may sit anywhere in the day
            other_start, other_end = 0, MINUTES_PER_DAY + duration
        else:
            other_start = reservation.start_minutes
            other_end = other_start + duration
        if overlaps(start, end, other_start, other_end):
            total += reservation.party_size
    return total


def evaluate(occupied: int, party_size: int, max_capacity: int) -> CapacityCheck:
    return CapacityCheck(
        available=occupied + party_size <= max_capacity,
        occupied_guests=occupied,
        remaining_seats=max(0, max_capacity - occupied),
    )


class CapacityEngine:
    def __init__(self, reservations: ConfirmedReservations, policy: BookingPolicy) -> None:
        self._reservations = reservations
        self._policy = policy

    async def check_capacity(self, day: date, start_minutes: int, party_size: int) -> CapacityCheck:
        """Seats check for one candidate slot.

        Store failures propagate as RepositoryUnavailable; they are never read
        as an empty restaurant.
        """
        existing = await self._reservations.list_confirmed(day)
        unknown = sum(1 for r in existing if r.start_minutes is None)
        if unknown:
            logger.warning("Reservations with unreadable start time counted as overlapping", day=day.isoformat(), count=unknown)

        occupied = occupied_guests(existing, start_minutes, self._policy.slot_duration_minutes)
        result = evaluate(occupied, party_size, self._policy.max_capacity)
        logger.info(
            "Capacity checked",
            day=day.isoformat(),
            start=start_minutes,
            party_size=party_size,
            occupied=result.occupied_guests,
            available=result.available,
        )
        return result
