from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Reservation:
    id: str
    day: date
    start_minutes: int | None  # None when the stored start cannot be decoded
    party_size: int
    name: str
    phone: str
    status: str
    created_time: str = ""
    request_key: str | None = None

    def sort_key(self) -> tuple[str, str]:
        """Deterministic order for picking among equivalent matches: oldest first."""
        return (self.created_time, self.id)


@dataclass(frozen=True)
class ReservationDraft:
    day: date
    start_minutes: int
    end_minutes: int
    party_size: int
    name: str
    phone: str
    request_key: str | None = None


@dataclass(frozen=True)
class DateException:
    day: date
    closed: bool
    reason: str | None = None
    open_minutes: int | None = None
    close_minutes: int | None = None


@dataclass(frozen=True)
class OpeningWindow:
    closed: bool
    reason: str | None = None
    open_minutes: int | None = None
    close_minutes: int | None = None

    @classmethod
    def closed_because(cls, reason: str) -> "OpeningWindow":
        return cls(closed=True, reason=reason)

    @classmethod
    def open_between(cls, open_minutes: int, close_minutes: int) -> "OpeningWindow":
        return cls(closed=False, open_minutes=open_minutes, close_minutes=close_minutes)


@dataclass(frozen=True)
class CapacityCheck:
    available: bool
    occupied_guests: int
    remaining_seats: int
