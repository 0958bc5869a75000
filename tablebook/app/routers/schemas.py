from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tablebook.app.core.errors import BookingError


class BookingRequest(BaseModel):
    """Canonical request, whatever envelope the caller wrapped it in."""

    model_config = ConfigDict(extra="ignore")

    date: str | None = None
    time: str | None = None
    guests: int | None = Field(
        default=None,
        validation_alias=AliasChoices("guests", "partySize", "party_size", "persons", "people"),
    )
    name: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=32)
    reservation_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("reservationId", "reservation_id"),
    )
    request_key: str | None = Field(
        default=None,
        max_length=200,
        validation_alias=AliasChoices("requestKey", "request_key"),
    )

    @field_validator("date", "time", "name", "phone", "reservation_id", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return v.strip() or None
        return v


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RejectionFields(ApiModel):
    reason: str | None = None
    cause: str | None = None
    message: str | None = None
    date: str | None = None
    time: str | None = None
    closed_reason: str | None = None
    opening_time: str | None = None
    closing_time: str | None = None
    latest_start: str | None = None
    occupied_guests: int | None = None
    max_capacity: int | None = None


class AvailabilityCheckOut(RejectionFields):
    available: bool
    remaining_seats: int


class CreateReservationOut(RejectionFields):
    success: bool
    reservation_id: str | None = None
    end_time: str | None = None
    guests: int | None = None
    name: str | None = None
    remaining_seats: int | None = None
    replayed: bool | None = None


class CancelReservationOut(ApiModel):
    success: bool
    reservation_id: str | None = None
    reason: str | None = None
    message: str | None = None
    date: str | None = None
    time: str | None = None


class ReservationLookupOut(ApiModel):
    success: bool
    reservation_id: str | None = None
    date: str | None = None
    time: str | None = None
    name: str | None = None
    guests: int | None = None
    reason: str | None = None
    message: str | None = None


def rejection_fields(exc: BookingError) -> dict[str, Any]:
    return {"reason": exc.code, "message": exc.message, **exc.extra}
