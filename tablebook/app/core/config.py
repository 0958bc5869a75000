import math
from dataclasses import dataclass
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings sourced from environment variables."""

    # "airtable" talks to the remote base, "memory" keeps records in-process (local dev)
    STORE_BACKEND: Literal["airtable", "memory"] = "airtable"
    AIRTABLE_TOKEN: str = ""
    AIRTABLE_BASE_ID: str = ""
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"

    RESERVATIONS_TABLE: str = "Reservations"
    OPENING_HOURS_TABLE: str = "OpeningHours"
    DATE_EXCEPTIONS_TABLE: str = "DateExceptions"

    # Status labels as stored in the base, e.g. "bestätigt" / "storniert"
    STATUS_CONFIRMED: str = "confirmed"
    STATUS_CANCELLED: str = "cancelled"

    # Optional Reservations columns; empty means the base has no such column.
    # Without a request key column, creates are not deduplicated.
    RESERVATION_END_FIELD: str = ""
    RESERVATION_REQUEST_KEY_FIELD: str = ""

    STORE_TIMEOUT_SECONDS: float = 10.0
    STORE_READ_RETRIES: int = 2

    MAX_CAPACITY: int = 20
    SLOT_DURATION_MINUTES: int = 120
    TIMEZONE: str = "Europe/Berlin"

    REDIS_URL: str | None = None  # e.g. redis://localhost:6379/0
    SLOT_GUARD_TTL_SECONDS: int | None = None  # derived from the store timeouts when unset
    SLOT_GUARD_WAIT_SECONDS: float = 3.0

    API_PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    model_config = ConfigDict(env_file=".env", extra="ignore")

    @field_validator("AIRTABLE_TOKEN", "AIRTABLE_BASE_ID", mode="after")
    @classmethod
    def strip_credentials(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("MAX_CAPACITY", "SLOT_DURATION_MINUTES")
    @classmethod
    def positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    def guarded_section_seconds(self) -> int:
        """Worst-case duration of the work done while the slot guard is held.

        A request-key lookup and a capacity read, each with its retries, then
        one insert; plus a little for retry backoff.
        """
        attempts = 2 * (self.STORE_READ_RETRIES + 1) + 1
        return math.ceil(self.STORE_TIMEOUT_SECONDS * attempts) + 2

    @model_validator(mode="after")
    def slot_guard_outlives_create(self) -> "Settings":
        minimum = self.guarded_section_seconds()
        if self.SLOT_GUARD_TTL_SECONDS is None:
            self.SLOT_GUARD_TTL_SECONDS = minimum
        elif self.SLOT_GUARD_TTL_SECONDS < minimum:
            raise ValueError(
                f"SLOT_GUARD_TTL_SECONDS must be at least {minimum} for the configured store timeout and retries"
            )
        return self


@dataclass(frozen=True)
class BookingPolicy:
    """Site-wide booking constants shared by every reservation."""

    max_capacity: int
    slot_duration_minutes: int

    @classmethod
    def from_settings(cls, source: Settings) -> "BookingPolicy":
        return cls(
            max_capacity=source.MAX_CAPACITY,
            slot_duration_minutes=source.SLOT_DURATION_MINUTES,
        )


settings = Settings()
policy = BookingPolicy.from_settings(settings)
