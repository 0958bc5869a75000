"""Error taxonomy for the booking service.

Input errors and domain rejections are recovered into structured negative
responses; infrastructure errors keep their own code and HTTP status so a voice
agent never tells a guest "we're full" when the store is down.
"""
from typing import Any


class BookingError(Exception):
    code = "booking_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        payload.update(self.extra)
        return payload


class InvalidRequest(BookingError):
    code = "invalid_request"
    status_code = 422


class InvalidDateFormat(InvalidRequest):
    code = "invalid_date"


class InvalidTimeFormat(InvalidRequest):
    code = "invalid_time"


class DomainRejection(BookingError):
    """Venue rule says no; reported as a negative answer, not as a failure."""

    status_code = 200


class ClosedOnDate(DomainRejection):
    code = "closed"


class OutsideOpeningHours(DomainRejection):
    code = "outside_opening_hours"


class CapacityExceeded(DomainRejection):
    code = "capacity_exceeded"


class NotFound(DomainRejection):
    code = "not_found"


class RepositoryUnavailable(BookingError):
    code = "repository_unavailable"
    status_code = 503
    retryable = True


class SlotBusy(BookingError):
    code = "slot_busy"
    status_code = 409
    retryable = True
